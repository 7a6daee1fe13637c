from django.urls import path
from .views import order_task_list, my_tasks, task_create, task_detail, task_assign, task_complete

urlpatterns = [
    path('orders/<int:order_id>/tasks/', order_task_list, name='order-task-list'),
    path('tasks/', task_create, name='task-create'),
    path('tasks/mine/', my_tasks, name='task-mine'),
    path('tasks/<int:pk>/', task_detail, name='task-detail'),
    path('tasks/<int:pk>/assign/', task_assign, name='task-assign'),
    path('tasks/<int:pk>/complete/', task_complete, name='task-complete'),
]
