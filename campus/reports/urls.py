from django.urls import path
from .views import my_statement, student_statement

app_name = "reports"

urlpatterns = [
    path("statement/", my_statement, name="my_statement"),
    path("statement/<int:student_pk>/", student_statement, name="student_statement"),
]
