"""Payment API views.

Exposes ``PaymentService`` over HTTP.  Domain exceptions are translated
into status codes here; gateway and signature details are logged by the
service and never echoed to the client.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from modules.core.permissions import IsOperator, is_operator
from modules.notifications.apps import get_notification_bus
from modules.orders.exceptions import OrderAccessDenied, OrderNotFound
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import OrderSerializer
from modules.payments.exceptions import (
    GatewayError,
    InvalidSignature,
    PaymentConflict,
    PaymentValidationError,
)
from modules.payments.gateway import RazorpayGateway
from modules.payments.serializers import (
    InitializePaymentSerializer,
    PaymentIntentSerializer,
    PaymentStatusSerializer,
    RefundOutputSerializer,
    RefundSerializer,
    VerifyPaymentSerializer,
)
from modules.payments.services import PaymentService
from shared.infrastructure.bus import event_bus


GATEWAY_FAILURE = "Failed to process payment"
VERIFICATION_FAILURE = "Payment verification failed"


def build_payment_service() -> PaymentService:
    return PaymentService(
        order_repository=OrderDjangoRepository(),
        gateway=RazorpayGateway.from_settings(),
        notification_bus=get_notification_bus(),
        event_bus=event_bus,
    )


def _not_found() -> Response:
    return Response({"detail": "Order not found."}, status=status.HTTP_404_NOT_FOUND)


def _gateway_failed() -> Response:
    return Response({"detail": GATEWAY_FAILURE}, status=status.HTTP_502_BAD_GATEWAY)


class InitializePaymentView(APIView):
    """POST /api/v1/payments/initialize/{order_id}/"""

    permission_classes = [IsAuthenticated]

    def post(self, request: Request, order_id) -> Response:
        serializer = InitializePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            intent = build_payment_service().create_payment_intent(
                order_id,
                currency=serializer.validated_data.get("currency"),
                requester_id=request.user.pk,
                is_operator=is_operator(request.user),
            )
        except OrderNotFound:
            return _not_found()
        except OrderAccessDenied as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_403_FORBIDDEN)
        except PaymentConflict as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        except PaymentValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except GatewayError:
            return _gateway_failed()

        return Response(
            PaymentIntentSerializer(intent.model_dump()).data,
            status=status.HTTP_201_CREATED,
        )


class VerifyPaymentView(APIView):
    """POST /api/v1/payments/verify/

    Marks the order paid only after the checkout signature verifies and
    the signed gateway order turns out to be the one opened for it.
    """

    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = build_payment_service().confirm_client_payment(
                data["payment_id"],
                data["order_id"],
                data["gateway_order_id"],
                data["signature"],
                requester_id=request.user.pk,
                is_operator=is_operator(request.user),
            )
        except OrderNotFound:
            return _not_found()
        except OrderAccessDenied as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_403_FORBIDDEN)
        except InvalidSignature:
            return Response(
                {"detail": VERIFICATION_FAILURE}, status=status.HTTP_400_BAD_REQUEST
            )
        except GatewayError:
            return _gateway_failed()

        return Response({"verified": True, "order": OrderSerializer(order).data})


class PaymentWebhookView(APIView):
    """POST /api/v1/payments/webhook/

    Called by the gateway, so no user authentication: the HMAC signature
    over the raw body is the only credential.
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payment_webhook"

    def post(self, request: Request) -> Response:
        raw_body = request.body
        try:
            build_payment_service().handle_webhook_event(
                raw_body, request.headers.get("X-Razorpay-Signature")
            )
        except InvalidSignature:
            return Response(
                {"detail": "Invalid signature."}, status=status.HTTP_400_BAD_REQUEST
            )
        except PaymentValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({"status": "ok"})


class RefundPaymentView(APIView):
    """POST /api/v1/payments/refund/{order_id}/"""

    permission_classes = [IsOperator]

    def post(self, request: Request, order_id) -> Response:
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = build_payment_service().process_refund(
                data.get("payment_id"),
                order_id,
                amount=data.get("amount"),
                reason=data["reason"],
            )
        except OrderNotFound:
            return _not_found()
        except PaymentConflict as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        except PaymentValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except GatewayError:
            return _gateway_failed()

        return Response(
            {
                "refund": RefundOutputSerializer(result.refund.model_dump()).data,
                "order": OrderSerializer(result.order).data,
            }
        )


class PaymentStatusView(APIView):
    """GET /api/v1/payments/status/{order_id}/"""

    permission_classes = [IsAuthenticated]

    def get(self, request: Request, order_id) -> Response:
        try:
            result = build_payment_service().get_payment_status(
                order_id,
                requester_id=request.user.pk,
                is_operator=is_operator(request.user),
            )
        except OrderNotFound:
            return _not_found()
        except OrderAccessDenied as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_403_FORBIDDEN)
        return Response(PaymentStatusSerializer(result.model_dump()).data)


class GatewayPaymentView(APIView):
    """GET /api/v1/payments/details/{payment_id}/"""

    permission_classes = [IsOperator]

    def get(self, request: Request, payment_id: str) -> Response:
        try:
            payment = build_payment_service().fetch_gateway_payment(payment_id)
        except GatewayError:
            return _gateway_failed()
        return Response(payment)
