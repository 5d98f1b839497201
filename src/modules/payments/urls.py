"""Payment URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.payments.views import (
    GatewayPaymentView,
    InitializePaymentView,
    PaymentStatusView,
    PaymentWebhookView,
    RefundPaymentView,
    VerifyPaymentView,
)

urlpatterns = [
    path(
        "payments/initialize/<uuid:order_id>/",
        InitializePaymentView.as_view(),
        name="payment-initialize",
    ),
    path("payments/verify/", VerifyPaymentView.as_view(), name="payment-verify"),
    path("payments/webhook/", PaymentWebhookView.as_view(), name="payment-webhook"),
    path(
        "payments/refund/<uuid:order_id>/",
        RefundPaymentView.as_view(),
        name="payment-refund",
    ),
    path(
        "payments/status/<uuid:order_id>/",
        PaymentStatusView.as_view(),
        name="payment-status",
    ),
    path(
        "payments/details/<str:payment_id>/",
        GatewayPaymentView.as_view(),
        name="payment-details",
    ),
]
