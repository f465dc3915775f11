from django.conf import settings
from django.utils.module_loading import import_string


def get_client():
    """Instantiate the client class named by MIRROR_CLIENT_CLASS."""
    return import_string(settings.MIRROR_CLIENT_CLASS)()
