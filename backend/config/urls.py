from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('school.urls')),
    path('telegram/', include('bot.urls')),
]
