from storefront.application.payments.reconcile_callback import (
    PaymentCallbackReconciler,
    ReconcileResult,
    ReconcileStatus,
)

__all__ = ["PaymentCallbackReconciler", "ReconcileResult", "ReconcileStatus"]
