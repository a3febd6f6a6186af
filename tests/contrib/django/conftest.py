from django.conf import settings


def pytest_configure():
    if not settings.configured:
        settings.configure(
            INSTALLED_APPS=[
                "django.contrib.contenttypes",
                "django.contrib.auth",
            ],
            SECRET_KEY="test_secret",
            ALLOWED_HOSTS=["testserver", "localhost"],
            SUDO_GATE_PUBLIC_PATHS=["/health"],
        )
        import django

        django.setup()
