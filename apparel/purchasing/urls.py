from django.urls import path
from .views import purchase_list_create, purchase_detail, purchase_complete, purchase_cancel

urlpatterns = [
    path('purchases/', purchase_list_create, name='purchase-list-create'),
    path('purchases/<int:pk>/', purchase_detail, name='purchase-detail'),
    path('purchases/<int:pk>/complete/', purchase_complete, name='purchase-complete'),
    path('purchases/<int:pk>/cancel/', purchase_cancel, name='purchase-cancel'),
]
