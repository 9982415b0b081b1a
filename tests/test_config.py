from falforge.config import Settings, mask_secret


def make_settings(**overrides):
    values = dict(openai_api_key="sk-test", fal_key="fal-test-key", execution_mode="submit")
    values.update(overrides)
    return Settings(**values)


def test_valid_settings_report_no_problems():
    assert make_settings().validate_settings() == {}


def test_missing_credentials_listed():
    settings = make_settings(openai_api_key="", fal_key="")

    assert settings.missing_credentials() == ["FAL_KEY", "OPENAI_API_KEY"]
    assert settings.validate_settings()["credentials"] == "Missing credentials: FAL_KEY, OPENAI_API_KEY"


def test_unknown_execution_mode():
    problems = make_settings(execution_mode="webhook").validate_settings()

    assert "execution_mode" in problems


def test_non_positive_limits():
    problems = make_settings(ranker_result_limit=0, queue_poll_interval=0).validate_settings()

    assert set(problems) == {"ranker_result_limit", "queue_poll_interval"}


def test_mask_secret():
    assert mask_secret("") == "Not set"
    assert mask_secret("abc") == "********"
    assert mask_secret("fal-secret-1234") == "********1234"
