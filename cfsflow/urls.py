from django.urls import path

from cfsflow import views

app_name = 'cfsflow'

urlpatterns = [
    path('v1/package-transactions/flows/<str:name>', views.flow_detail, name='flow-detail'),
    path('v1/package-transactions', views.transaction_list, name='transaction-list'),
    path('v1/package-transactions/<int:pk>', views.transaction_detail, name='transaction-detail'),
    path('v1/package-transactions/<int:pk>/complete', views.transaction_complete, name='transaction-complete'),
    path('v1/package-transactions/<int:pk>/handle-step', views.transaction_handle_step, name='transaction-handle-step'),
    path('v1/packing-lists/<int:pk>/lines', views.packing_list_lines, name='packing-list-lines'),
    path('v1/cargo-packages', views.package_list, name='package-list'),
    path('v1/locations/<int:pk>', views.location_detail, name='location-detail'),
]
