"""Tests for the login sub-flow."""

import pytest

LOGIN_URL = "https://shop.example.com/login"
ACCOUNT_URL = "https://shop.example.com/account"


def login_form(extra=None):
    elements = {
        "#username": [{}],
        "#password": [{}],
        "button[type='submit']": [{}],
    }
    elements.update(extra or {})
    return elements


@pytest.fixture
def auth_config():
    from src.automation.models import AuthConfig

    return AuthConfig(login_url=LOGIN_URL, username="ada", password="hunter2")


class TestLoginPageDetection:
    """URL heuristic for "still on the login page"."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://shop.example.com/login", True),
            ("https://shop.example.com/signin?next=/", True),
            ("https://shop.example.com/account", False),
        ],
    )
    def test_looks_like_login_page(self, url, expected):
        from src.automation.authentication import looks_like_login_page

        assert looks_like_login_page(url) is expected


class TestLogin:
    """AuthenticationFlow.login outcomes."""

    @pytest.mark.asyncio
    async def test_successful_login(self, fake_session_factory, auth_config):
        from src.automation.authentication import AuthenticationFlow

        session = fake_session_factory({LOGIN_URL: login_form()}, submit_redirect=ACCOUNT_URL)
        flow = AuthenticationFlow(typing_delay_ms=0)

        result = await flow.login(session, auth_config)

        assert result.success is True
        assert result.message is None
        assert session.typed == [("#username", "ada", 0), ("#password", "hunter2", 0)]
        assert [entry.message for entry in result.logs] == [
            f"Navigating to login page: {LOGIN_URL}",
            "Waiting for login form...",
            "Filling in credentials...",
            "Submitting login form...",
            "Login successful",
        ]
        assert result.logs[-1].level == "success"

    @pytest.mark.asyncio
    async def test_navigation_timeout_override(self, fake_session_factory, auth_config):
        from src.automation.authentication import AuthenticationFlow

        session = fake_session_factory({LOGIN_URL: login_form()}, submit_redirect=ACCOUNT_URL)

        await AuthenticationFlow().login(session, auth_config, navigation_timeout_ms=4000)

        assert session.calls[0] == ("navigate", LOGIN_URL, "networkidle", 4000)

    @pytest.mark.asyncio
    async def test_custom_selectors_are_used(self, fake_session_factory):
        from src.automation.authentication import AuthenticationFlow
        from src.automation.models import AuthConfig, AuthSelectors

        auth = AuthConfig(
            login_url=LOGIN_URL,
            username="ada",
            password="hunter2",
            selectors=AuthSelectors(username="input[name=email]", password="input[name=pw]", submit="#go"),
        )
        session = fake_session_factory(
            {LOGIN_URL: {"input[name=email]": [{}], "input[name=pw]": [{}], "#go": [{}]}},
            submit_redirect=ACCOUNT_URL,
        )

        result = await AuthenticationFlow(typing_delay_ms=0).login(session, auth)

        assert result.success is True
        assert ("click_and_wait_for_navigation", "#go", 15000) in session.calls

    @pytest.mark.asyncio
    async def test_still_on_login_page_reports_error_text(self, fake_session_factory, auth_config):
        from src.automation.authentication import ERROR_INDICATOR_SELECTOR, AuthenticationFlow

        page = login_form({ERROR_INDICATOR_SELECTOR: [{"textContent": "  Invalid credentials "}]})
        session = fake_session_factory({LOGIN_URL: page})

        result = await AuthenticationFlow(typing_delay_ms=0).login(session, auth_config)

        assert result.success is False
        assert result.message == "Login failed: Invalid credentials"
        assert result.logs[-1].level == "error"
        assert result.logs[-1].message == "Authentication failed: Login failed: Invalid credentials"

    @pytest.mark.asyncio
    async def test_still_on_login_page_without_error_text(self, fake_session_factory, auth_config):
        from src.automation.authentication import AuthenticationFlow

        session = fake_session_factory({LOGIN_URL: login_form()})

        result = await AuthenticationFlow(typing_delay_ms=0).login(session, auth_config)

        assert result.success is False
        assert result.message == "Login failed: Still on login page"

    @pytest.mark.asyncio
    async def test_missing_username_field_fails_without_typing(self, fake_session_factory, auth_config):
        from src.automation.authentication import AuthenticationFlow

        session = fake_session_factory({LOGIN_URL: {"#password": [{}]}})

        result = await AuthenticationFlow(field_timeout_ms=100).login(session, auth_config)

        assert result.success is False
        assert "100ms" in result.message
        assert session.typed == []
        assert [entry.message for entry in result.logs][:2] == [
            f"Navigating to login page: {LOGIN_URL}",
            "Waiting for login form...",
        ]

    @pytest.mark.asyncio
    async def test_login_page_navigation_error_is_reported(self, fake_session_factory, auth_config):
        from src.automation.authentication import AuthenticationFlow

        session = fake_session_factory(navigation_errors={LOGIN_URL: RuntimeError("net::ERR_NAME_NOT_RESOLVED")})

        result = await AuthenticationFlow().login(session, auth_config)

        assert result.success is False
        assert result.message == "net::ERR_NAME_NOT_RESOLVED"


class TestIsAuthenticated:
    """Post-login session check."""

    @pytest.mark.asyncio
    async def test_false_while_on_login_page(self, fake_session_factory, auth_config):
        from src.automation.authentication import AuthenticationFlow

        session = fake_session_factory()
        session.current_url = LOGIN_URL

        assert await AuthenticationFlow().is_authenticated(session, auth_config) is False

    @pytest.mark.asyncio
    async def test_true_off_login_page_without_check_selector(self, fake_session_factory, auth_config):
        from src.automation.authentication import AuthenticationFlow

        session = fake_session_factory()
        session.current_url = ACCOUNT_URL

        assert await AuthenticationFlow().is_authenticated(session, auth_config) is True

    @pytest.mark.asyncio
    async def test_check_selector_must_be_present(self, fake_session_factory):
        from src.automation.authentication import AuthenticationFlow
        from src.automation.models import AuthConfig

        auth = AuthConfig(login_url=LOGIN_URL, username="ada", password="x", check_selector=".avatar")
        session = fake_session_factory({ACCOUNT_URL: {".avatar": [{}]}})
        session.current_url = ACCOUNT_URL
        flow = AuthenticationFlow()

        assert await flow.is_authenticated(session, auth) is True

        session.pages[ACCOUNT_URL] = {}
        assert await flow.is_authenticated(session, auth) is False
