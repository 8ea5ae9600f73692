"""
Presenters - formatting orders and money for display

Presenters turn models into user-facing text; canonical statuses are
translated here and nowhere else.
"""

from foodcourt.presenters.order_presenter import OrderPresenter


__all__ = ["OrderPresenter"]
