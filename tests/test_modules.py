"""Tests for the built-in flow modules, run against page doubles."""

from unittest.mock import AsyncMock, patch

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from mgrant_flow.core.recorder import ResultRecorder
from mgrant_flow.errors import AuthenticationRequiredError
from mgrant_flow.modules import authentication, masters_beneficiary, masters_focus_area, organisation


@pytest.fixture
def recorder(tmp_path, mock_page) -> ResultRecorder:
    return ResultRecorder(tmp_path / "shots", page=mock_page)


@pytest.fixture
def no_expect():
    """Playwright's expect() only accepts real locators; stub it per module."""
    targets = [authentication, organisation, masters_beneficiary, masters_focus_area]
    patchers = [patch.object(module, "expect", return_value=AsyncMock()) for module in targets]
    for p in patchers:
        p.start()
    yield
    for p in patchers:
        p.stop()


async def _run(module, mock_page, recorder, auth, shared_data, name, is_authenticated=True):
    await module.execute_tests(
        mock_page,
        recorder.log_step,
        recorder.bind(name),
        shared_data,
        is_authenticated,
        auth=auth,
    )


def _statuses(recorder):
    return [(r.test_name.split(":")[0], r.status.value) for r in recorder.results]


# ============================================================================
# Authentication
# ============================================================================


class TestAuthenticationModule:
    @pytest.mark.asyncio
    async def test_happy_path(self, mock_page, recorder, auth_session, no_expect):
        auth_session.login = AsyncMock(return_value=True)
        mock_page.evaluate = AsyncMock(return_value=True)
        shared = {}

        await _run(authentication, mock_page, recorder, auth_session, shared, "Authentication", False)

        assert _statuses(recorder) == [("TC001", "PASSED"), ("TC002", "PASSED"), ("TC003", "PASSED")]
        assert recorder.results[2].details == "Session valid without reload"
        assert shared == {"authenticationCompleted": True, "authenticationSaved": True}
        assert recorder.current_step == 3

    @pytest.mark.asyncio
    async def test_login_failure_halts(self, mock_page, recorder, auth_session, no_expect):
        auth_session.login = AsyncMock(return_value=False)
        shared = {}

        with pytest.raises(AuthenticationRequiredError):
            await _run(authentication, mock_page, recorder, auth_session, shared, "Authentication")

        assert _statuses(recorder) == [("TC001", "PASSED"), ("TC002", "FAILED")]
        assert shared == {}

    @pytest.mark.asyncio
    async def test_missing_form_fails_only_that_case(
        self, mock_page, mock_locator, recorder, auth_session, no_expect
    ):
        mock_locator.wait_for = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout"))
        auth_session.login = AsyncMock(return_value=True)

        await _run(authentication, mock_page, recorder, auth_session, {}, "Authentication")

        assert _statuses(recorder)[0] == ("TC001", "FAILED")
        assert recorder.results[0].details["selector"] == auth_session.config.login_selectors.login_form
        assert _statuses(recorder)[1] == ("TC002", "PASSED")


# ============================================================================
# Organisation
# ============================================================================


class TestOrganisationModule:
    @pytest.mark.asyncio
    async def test_search_and_select(self, mock_page, recorder, auth_session, no_expect):
        auth_session.ensure_if_needed = AsyncMock(return_value=True)
        auth_session.manager.protected_page_visible = AsyncMock(return_value=True)
        mock_page.url = "https://qa.example.test/#/organisations"
        shared = {}

        await _run(organisation, mock_page, recorder, auth_session, shared, "Organisation")

        assert _statuses(recorder) == [("TC005", "PASSED"), ("TC006", "PASSED"), ("TC007", "PASSED")]
        assert shared["selectedOrganisation"] == "playwrightUIAutomation"
        assert shared["searchResults"] == {"playwrightUIAutomation": "found_and_clicked"}
        mock_page.goto.assert_awaited_once_with(
            "https://qa.example.test/#/projects/list/csr?tab=csrProject"
        )

    @pytest.mark.asyncio
    async def test_search_term_from_shared_data(self, mock_page, mock_locator, recorder,
                                                auth_session, no_expect):
        auth_session.ensure_if_needed = AsyncMock(return_value=True)
        auth_session.manager.protected_page_visible = AsyncMock(return_value=True)
        shared = {"organisationSearchTerm": "acme"}

        await _run(organisation, mock_page, recorder, auth_session, shared, "Organisation")

        mock_locator.fill.assert_awaited_with("acme")
        assert shared["selectedOrganisation"] == "acme"

    @pytest.mark.asyncio
    async def test_requires_session(self, mock_page, recorder, auth_session, no_expect):
        auth_session.ensure_if_needed = AsyncMock(return_value=False)
        with pytest.raises(AuthenticationRequiredError):
            await _run(organisation, mock_page, recorder, auth_session, {}, "Organisation")
        assert recorder.results == []

    @pytest.mark.asyncio
    async def test_organisation_not_found(self, mock_page, mock_locator, recorder,
                                          auth_session, no_expect):
        auth_session.ensure_if_needed = AsyncMock(return_value=True)
        auth_session.manager.protected_page_visible = AsyncMock(return_value=True)
        mock_locator.wait_for = AsyncMock(side_effect=[None, PlaywrightTimeoutError("Timeout")])
        shared = {}

        await _run(organisation, mock_page, recorder, auth_session, shared, "Organisation")

        assert _statuses(recorder) == [("TC005", "PASSED"), ("TC006", "FAILED"), ("TC007", "PASSED")]
        assert shared["searchResults"] == {"playwrightUIAutomation": "not_found"}
        assert "selectedOrganisation" not in shared
        assert recorder.results[2].details == "Skipped, no organisation selected"

    @pytest.mark.asyncio
    async def test_page_without_content_fails_access(self, mock_page, recorder, auth_session,
                                                     no_expect):
        auth_session.ensure_if_needed = AsyncMock(return_value=True)
        auth_session.manager.protected_page_visible = AsyncMock(return_value=False)

        await _run(organisation, mock_page, recorder, auth_session, {}, "Organisation")

        assert _statuses(recorder)[0] == ("TC005", "FAILED")
        assert recorder.results[0].details == {"h5": 0, "cards": 0}
        mock_page.goto.assert_any_await(
            "https://qa.example.test/#/organisations", wait_until="domcontentloaded"
        )


# ============================================================================
# Masters
# ============================================================================


class TestMastersModules:
    @pytest.mark.asyncio
    async def test_beneficiary_crud(self, mock_page, recorder, auth_session, no_expect):
        shared = {}
        await _run(masters_beneficiary, mock_page, recorder, auth_session, shared,
                   "Masters-Beneficiary")
        assert _statuses(recorder) == [("TC008", "PASSED")]
        assert shared["beneficiaryCreated"] == "Test Name Ben"
        assert shared["beneficiaryDeleted"] is True

    @pytest.mark.asyncio
    async def test_missing_masters_tab_is_recorded(self, mock_page, mock_locator, recorder,
                                                   auth_session, no_expect):
        mock_locator.wait_for = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout"))
        shared = {}
        await _run(masters_beneficiary, mock_page, recorder, auth_session, shared,
                   "Masters-Beneficiary")
        assert _statuses(recorder) == [("TC008", "FAILED")]
        assert shared == {}

    @pytest.mark.asyncio
    async def test_focus_area_crud(self, mock_page, recorder, auth_session, no_expect):
        shared = {}
        await _run(masters_focus_area, mock_page, recorder, auth_session, shared, "Masters-FocusArea")
        assert _statuses(recorder) == [("TC009", "PASSED")]
        assert shared["focusAreaCreated"] == "Test FA"
        mock_page.goto.assert_awaited_once_with("https://qa.example.test/#/masters")
