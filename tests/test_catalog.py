import shutil

import pytest

from quote_engine.config.settings import DATA_DIR_ENV, Settings, get_bundled_data_dir
from quote_engine.data.catalog import create_initial_config, get_file_hash, load_catalog
from quote_engine.engine.models import CustomerType, DeviceCategory, PricingModel


def test_bundled_catalog_loads(catalog):
    assert [p.id for p in catalog.plans][:2] == ['experience-beyond', 'experience-beyond-military']
    assert len(catalog.plans) == 7
    assert {i.id for i in catalog.insurance_plans} == {'basic', 'p360', 'p360_bts', 'basic_bts'}
    assert len(catalog.service_plans) == 5
    assert len(catalog.device_database.devices) == 5
    assert len(catalog.promotions) == 6
    assert catalog.guidance_items
    assert len(catalog.catalog_hash) == 12


def test_plan_rows_are_parsed(catalog):
    beyond = catalog.plans[0]
    assert beyond.pricing_model == PricingModel.TIERED
    assert beyond.tiered_prices[:3] == [105.0, 180.0, 230.0]
    assert beyond.max_lines == 12
    assert beyond.available_for == [CustomerType.STANDARD]
    assert beyond.taxes_included is True
    assert 'Netflix ON US' in beyond.features
    assert beyond.allowed_discounts == {'insider': True, 'third_line_free': True}


def test_device_database(catalog):
    pro = catalog.device_database.find('iphone-15-pro')
    assert 'apple_pro' in pro.tags
    assert [v.price for v in pro.variants] == [999.0, 1099.0, 1299.0]
    assert catalog.device_database.find('ipad-10').category == DeviceCategory.TABLET
    assert catalog.device_database.find('unknown') is None


def test_discount_settings_come_from_settings(catalog):
    assert catalog.discount_settings.autopay == 5.0
    assert catalog.discount_settings.insider == 20.0
    assert catalog.discount_settings.third_line_free is True


def test_initial_config(catalog):
    config = create_initial_config(catalog.plans)
    assert config.plan == 'experience-beyond'
    assert config.lines == 1
    assert config.discounts.autopay is True
    assert config.tax_rate == 6.0
    assert (config.max_ec, config.per_line_ec) == (6500.0, 1500.0)
    assert create_initial_config([]).plan == ''


def test_data_dir_override(tmp_path, monkeypatch):
    for source in get_bundled_data_dir().iterdir():
        shutil.copy(source, tmp_path / source.name)
    (tmp_path / 'guidance.json').unlink()

    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path))
    settings = Settings.load()
    assert settings.data_dir == tmp_path

    catalog = load_catalog(settings)
    assert catalog.guidance_items == []
    assert len(catalog.plans) == 7


def test_missing_required_file_raises(tmp_path):
    settings = Settings.load(data_dir=tmp_path)
    with pytest.raises(FileNotFoundError):
        load_catalog(settings)


def test_invalid_promotions_raise(tmp_path):
    for source in get_bundled_data_dir().iterdir():
        shutil.copy(source, tmp_path / source.name)
    (tmp_path / 'promotions.json').write_text('[{"id": "x", "category": "Nope"}]')

    with pytest.raises(ValueError, match="invalid category 'Nope'"):
        load_catalog(Settings.load(data_dir=tmp_path))


def test_file_hash(tmp_path):
    path = tmp_path / 'a.txt'
    assert get_file_hash(path) == ""
    path.write_text('hello')
    assert len(get_file_hash(path)) == 12
