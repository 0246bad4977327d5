from photolog.config import DEFAULT_DATABASE_URL, Environment, Settings


def test_production_flag():
    assert Settings(environment="PRODUCTION").is_production
    assert not Settings(environment=Environment.DEV).is_production


def test_list_settings_from_comma_strings():
    settings = Settings(allowed_extensions="JPG, .png,", allowed_categories="Inventory, Shipments")
    assert settings.extension_set == frozenset({"jpg", "png"})
    assert settings.category_list == ["Inventory", "Shipments"]


def test_empty_values_fall_back():
    settings = Settings(database_url="", orphan_sweep_interval_seconds="")
    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.orphan_sweep_interval_seconds == 0
