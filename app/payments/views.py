"""
DRF views for payments app.

This module provides API views for:
- Deposits and the user's payment history
- Admin escrow operations (capture, release, refund)
- Admin payout listing, batch run and requeue
- Provider payout listing and Stripe Connect onboarding

Related files:
    - services/: PaymentService, PayoutService, ConnectService
    - serializers.py: Request/response serializers
    - webhooks/views.py: Stripe webhook endpoint
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/deposit/ - Create a deposit
    POST /api/v1/payments/capture/ - Capture an authorized deposit (admin)
    POST /api/v1/payments/release/ - Release escrow and schedule payout (admin)
    POST /api/v1/payments/refund/ - Refund a deposit (admin)
    GET /api/v1/payments/me/ - Latest payments of the current user
    GET /api/v1/payments/admin/payouts/ - List payouts (admin)
    POST /api/v1/payments/admin/payouts/run/ - Run due payouts now (admin)
    POST /api/v1/payments/admin/payouts/<id>/requeue/ - Requeue a failed payout (admin)
    GET /api/v1/payments/provider/payouts/ - Payouts of the current provider
    POST /api/v1/payments/connect/account/ - Create Connect account (provider)
    POST /api/v1/payments/connect/account-link/ - Onboarding link (provider)
    GET /api/v1/payments/connect/status/ - Connect status (provider)

Security:
    - All endpoints require authentication
    - Admin and provider endpoints check the marketplace role
    - Failures are answered as {"error", "error_code"} with the status from
      core.views.ERROR_STATUS_CODES
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.permissions import IsAdminRole, IsProviderRole
from core.views import error_response, invalid_request_response

from payments.serializers import (
    AccountLinkSerializer,
    ConnectAccountSerializer,
    ConnectStatusSerializer,
    DepositRequestSerializer,
    DepositResponseSerializer,
    PaymentActionSerializer,
    PaymentSerializer,
    PayoutRunResultSerializer,
    PayoutSerializer,
    RefundRequestSerializer,
    ReleaseResponseSerializer,
    RunPayoutsSerializer,
)
from payments.services import ConnectService, PaymentService, PayoutService
from payments.services.payout_service import is_valid_payout_status

logger = logging.getLogger(__name__)


# =============================================================================
# Payments
# =============================================================================


class DepositView(APIView):
    """
    Create a deposit.

    POST /api/v1/payments/deposit/

    Request body:
        {
            "amount_cents": 200000,
            "currency": "USD",
            "hold_days": 7,
            "quotation_id": "<uuid>"
        }

    Returns:
        201 with the payment, plus client_secret in STRIPE mode
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_deposit",
        request=DepositRequestSerializer,
        responses={
            201: DepositResponseSerializer,
            400: OpenApiResponse(description="Validation or gateway error"),
            403: OpenApiResponse(description="Quotation belongs to another user"),
            404: OpenApiResponse(description="Quotation not found"),
            500: OpenApiResponse(description="Stripe not configured"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = DepositRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        result = PaymentService.initiate_deposit(user=request.user, **serializer.validated_data)
        if not result.success:
            return error_response(result)

        return Response(
            DepositResponseSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )


class CapturePaymentView(APIView):
    """
    Capture an authorized PaymentIntent and move the payment to HELD.

    POST /api/v1/payments/capture/

    Request body:
        {"payment_id": "<uuid>"}
    """

    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        operation_id="capture_payment",
        request=PaymentActionSerializer,
        responses={200: PaymentSerializer},
        tags=["Payments"],
    )
    def post(self, request):
        serializer = PaymentActionSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        result = PaymentService.capture_payment(
            request.user, serializer.validated_data["payment_id"]
        )
        if not result.success:
            return error_response(result)
        return Response(PaymentSerializer(result.data).data)


class ReleasePaymentView(APIView):
    """
    Release a HELD payment and schedule the provider payout.

    POST /api/v1/payments/release/

    Request body:
        {"payment_id": "<uuid>"}

    Returns:
        {"payment": {...}, "payout": {...}}
    """

    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        operation_id="release_payment",
        request=PaymentActionSerializer,
        responses={200: ReleaseResponseSerializer},
        tags=["Payments"],
    )
    def post(self, request):
        serializer = PaymentActionSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        result = PaymentService.release_payment(
            request.user, serializer.validated_data["payment_id"]
        )
        if not result.success:
            return error_response(result)
        return Response(ReleaseResponseSerializer(result.data).data)


class RefundPaymentView(APIView):
    """
    Refund a HELD or RELEASED payment.

    POST /api/v1/payments/refund/

    Request body:
        {"payment_id": "<uuid>", "reason": "Procedure cancelled"}
    """

    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        operation_id="refund_payment",
        request=RefundRequestSerializer,
        responses={200: PaymentSerializer},
        tags=["Payments"],
    )
    def post(self, request):
        serializer = RefundRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        result = PaymentService.refund_payment(
            request.user,
            serializer.validated_data["payment_id"],
            reason=serializer.validated_data.get("reason") or None,
        )
        if not result.success:
            return error_response(result)
        return Response(PaymentSerializer(result.data).data)


class MyPaymentsView(APIView):
    """
    Latest payments of the current user, newest first.

    GET /api/v1/payments/me/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_my_payments",
        responses={200: PaymentSerializer(many=True)},
        tags=["Payments"],
    )
    def get(self, request):
        payments = PaymentService.list_payments_for_user(request.user)
        return Response(PaymentSerializer(payments, many=True).data)


# =============================================================================
# Payouts
# =============================================================================


class AdminPayoutListView(APIView):
    """
    List payouts, newest scheduled first.

    GET /api/v1/payments/admin/payouts/?status=FAILED
    """

    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        operation_id="list_payouts",
        parameters=[
            OpenApiParameter(
                name="status",
                type=str,
                location=OpenApiParameter.QUERY,
                description="PENDING, PAID or FAILED",
                required=False,
            ),
        ],
        responses={200: PayoutSerializer(many=True)},
        tags=["Payouts"],
    )
    def get(self, request):
        payout_status = request.query_params.get("status")
        if payout_status and not is_valid_payout_status(payout_status):
            return Response(
                {"error": f"Unknown payout status: {payout_status}", "error_code": "VALIDATION_ERROR"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        payouts = PayoutService.list_payouts(status=payout_status)
        return Response(PayoutSerializer(payouts, many=True).data)


class RunDuePayoutsView(APIView):
    """
    Run the payout executor now.

    POST /api/v1/payments/admin/payouts/run/

    Request body (optional):
        {"limit": 50}

    Returns:
        [{"payoutId": "...", "status": "PAID", "externalRef": "tr_..."}]
    """

    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        operation_id="run_due_payouts",
        request=RunPayoutsSerializer,
        responses={200: PayoutRunResultSerializer(many=True)},
        tags=["Payouts"],
    )
    def post(self, request):
        serializer = RunPayoutsSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        results = PayoutService.run_due_payouts(limit=serializer.validated_data.get("limit"))
        logger.info(
            "Payout run triggered by admin",
            extra={"user_id": str(request.user.pk), "processed": len(results)},
        )
        return Response(results)


class RequeuePayoutView(APIView):
    """
    Move a FAILED payout back to PENDING.

    POST /api/v1/payments/admin/payouts/<id>/requeue/
    """

    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        operation_id="requeue_payout",
        request=None,
        responses={200: PayoutSerializer},
        tags=["Payouts"],
    )
    def post(self, request, payout_id):
        result = PayoutService.requeue_payout(request.user, payout_id)
        if not result.success:
            return error_response(result)
        return Response(PayoutSerializer(result.data).data)


class ProviderPayoutListView(APIView):
    """
    Payouts of the current provider.

    GET /api/v1/payments/provider/payouts/
    """

    permission_classes = [IsAuthenticated, IsProviderRole]

    @extend_schema(
        operation_id="list_provider_payouts",
        responses={200: PayoutSerializer(many=True)},
        tags=["Payouts"],
    )
    def get(self, request):
        result = PayoutService.list_payouts_for_provider(request.user)
        if not result.success:
            return error_response(result)
        return Response(PayoutSerializer(result.data, many=True).data)


# =============================================================================
# Stripe Connect
# =============================================================================


class ConnectAccountView(APIView):
    """
    Create (or return) the provider's Stripe Connect account.

    POST /api/v1/payments/connect/account/
    """

    permission_classes = [IsAuthenticated, IsProviderRole]

    @extend_schema(
        operation_id="create_connect_account",
        request=None,
        responses={200: ConnectAccountSerializer},
        tags=["Stripe Connect"],
    )
    def post(self, request):
        result = ConnectService.create_connect_account(request.user)
        if not result.success:
            return error_response(result)
        return Response({"stripe_account_id": result.data})


class ConnectAccountLinkView(APIView):
    """
    Create a hosted onboarding link.

    POST /api/v1/payments/connect/account-link/
    """

    permission_classes = [IsAuthenticated, IsProviderRole]

    @extend_schema(
        operation_id="create_connect_account_link",
        request=None,
        responses={200: AccountLinkSerializer},
        tags=["Stripe Connect"],
    )
    def post(self, request):
        result = ConnectService.create_account_link(request.user)
        if not result.success:
            return error_response(result)
        return Response({"url": result.data.url, "expires_at": result.data.expires_at})


class ConnectStatusView(APIView):
    """
    Onboarding state of the provider's connected account.

    GET /api/v1/payments/connect/status/
    """

    permission_classes = [IsAuthenticated, IsProviderRole]

    @extend_schema(
        operation_id="get_connect_status",
        responses={200: ConnectStatusSerializer},
        tags=["Stripe Connect"],
    )
    def get(self, request):
        result = ConnectService.connect_status(request.user)
        if not result.success:
            return error_response(result)
        return Response(ConnectStatusSerializer(result.data).data)
