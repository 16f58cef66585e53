import uuid

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .models import RevenueSplit
from .serializers import (
    RevenueSplitSerializer,
    SimulateQuerySerializer,
    SplitBreakdownSerializer,
    SplitStatusSerializer,
)
from .services import instructor_total_earnings, simulate_split, update_split_status


class RevenueSplitViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = RevenueSplit.objects.select_related("enrollment").all()
    serializer_class = RevenueSplitSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ["enrollment", "instructor_id", "status"]
    ordering_fields = ["created_at", "instructor_amount"]

    @action(detail=False, methods=["get"], url_path=r"enrollment/(?P<enrollment_id>[0-9a-fA-F-]+)")
    def by_enrollment(self, request, enrollment_id=None, *args, **kwargs):
        try:
            enrollment_id = uuid.UUID(enrollment_id)
        except ValueError:
            return Response({"detail": "Revenue split not found"}, status=status.HTTP_404_NOT_FOUND)
        split = RevenueSplit.objects.filter(enrollment_id=enrollment_id).first()
        if split is None:
            return Response({"detail": "Revenue split not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(self.get_serializer(split).data)

    @action(detail=False, methods=["get"], url_path=r"instructor/(?P<instructor_id>[^/.]+)")
    def by_instructor(self, request, instructor_id=None, *args, **kwargs):
        qs = self.filter_queryset(self.get_queryset().filter(instructor_id=instructor_id))
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(qs, many=True).data)

    @action(detail=False, methods=["get"], url_path=r"instructor/(?P<instructor_id>[^/.]+)/total")
    def instructor_total(self, request, instructor_id=None, *args, **kwargs):
        total = instructor_total_earnings(instructor_id)
        return Response({"instructor_id": instructor_id, "total_earnings": str(total), "currency": "BRL"})

    @action(detail=True, methods=["patch"], url_path="status")
    def set_status(self, request, pk=None, *args, **kwargs):
        split = self.get_object()
        serializer = SplitStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        split = update_split_status(split, serializer.validated_data["status"])
        return Response(
            {"message": "Revenue split status updated successfully", "split": self.get_serializer(split).data},
            status=status.HTTP_200_OK,
        )

    @action(detail=False, methods=["get"], url_path="simulate")
    def simulate(self, request, *args, **kwargs):
        query = SimulateQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        breakdown = simulate_split(query.validated_data["value"], query.validated_data["method"].lower())
        return Response(SplitBreakdownSerializer(breakdown).data)
