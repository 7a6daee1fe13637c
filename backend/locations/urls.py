from django.urls import path
from .views import rickhouse_list_create, rickhouse_detail

urlpatterns = [
    path('rickhouses/', rickhouse_list_create, name='rickhouse-list-create'),
    path('rickhouses/<int:pk>/', rickhouse_detail, name='rickhouse-detail'),
]
