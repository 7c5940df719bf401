from respatch.settings import Settings, load_settings, save_settings


def test_round_trip(tmp_path):
    path = tmp_path / "settings.yml"
    settings = Settings(game_dir="/games/kotor", width=1920, height=1080)

    assert save_settings(path, settings)

    assert load_settings(path) == settings


def test_none_values_are_not_written(tmp_path):
    path = tmp_path / "settings.yml"
    save_settings(path, Settings(width=800))
    assert path.read_text(encoding="utf-8").strip() == "width: 800"


def test_missing_file_gives_defaults(tmp_path):
    assert load_settings(tmp_path / "missing.yml") == Settings()


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "settings.yml"
    path.write_text("", encoding="utf-8")
    assert load_settings(path) == Settings()


def test_invalid_yaml_gives_defaults(tmp_path, caplog):
    path = tmp_path / "settings.yml"
    path.write_text("width: [1920\n", encoding="utf-8")
    assert load_settings(path) == Settings()
    assert "Failed to load settings" in caplog.text


def test_invalid_values_give_defaults(tmp_path):
    path = tmp_path / "settings.yml"
    path.write_text("width: 70000\n", encoding="utf-8")
    assert load_settings(path) == Settings()


def test_non_mapping_gives_defaults(tmp_path):
    path = tmp_path / "settings.yml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    assert load_settings(path) == Settings()


def test_save_to_unwritable_location(tmp_path):
    assert not save_settings(tmp_path / "missing" / "settings.yml", Settings())
