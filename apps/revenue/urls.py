from rest_framework.routers import DefaultRouter

from .views import RevenueSplitViewSet

router = DefaultRouter()
router.register("", RevenueSplitViewSet, basename="revenue-split")

urlpatterns = router.urls
