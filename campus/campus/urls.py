from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("", include(("accounts.urls", "accounts"), namespace="accounts")),
    path("registrar/", include(("registrar.urls", "registrar"), namespace="registrar")),
    path("finance/", include(("finance.urls", "finance"), namespace="finance")),
    path("reports/", include(("reports.urls", "reports"), namespace="reports")),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
