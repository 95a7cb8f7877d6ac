"""Masters: Beneficiary create/edit/delete."""

from __future__ import annotations

import logging
from typing import Any, Callable

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import Page, expect

from mgrant_flow.auth.session import AuthSession
from mgrant_flow.core.recorder import ModuleRecorder
from mgrant_flow.core.registry import flow_module
from mgrant_flow.errors import RecordedTestFailure
from mgrant_flow.models.config import AppConfig
from mgrant_flow.utils.browser import settle

logger = logging.getLogger(__name__)

TEST_CASE = "TC008: Masters Navigation and Beneficiary Management"
BENEFICIARY = {
    "name": "Test Name Ben",
    "parent_detail": "Father",
    "age": "23",
    "father_name": "Test Ben Name",
    "father_age": "52",
}
DELETED_TOAST = "Item Deleted Successfully !!"


async def open_masters_tab(page: Page, config: AppConfig, tab: str) -> None:
    """Navigate to Masters and select a tab by its visible label."""
    await page.goto(config.url_for("masters"))
    await settle(page, config.timeouts.settle_ms)
    tab_label = page.get_by_text(tab, exact=True).first
    try:
        await tab_label.wait_for(state="visible", timeout=config.timeouts.verification_ms)
    except PlaywrightTimeoutError as e:
        raise RecordedTestFailure(f"Masters tab '{tab}' not found", {"url": page.url}) from e
    await tab_label.click()
    await settle(page, config.timeouts.settle_ms)


@flow_module("Masters-Beneficiary")
async def execute_tests(
    page: Page,
    log_step: Callable[[str], int],
    record_result: ModuleRecorder,
    shared_data: dict[str, Any],
    is_authenticated: bool,
    *,
    auth: AuthSession,
) -> None:
    """Create, edit and delete a beneficiary under Masters."""
    config = auth.config
    logger.info("=== Module: Masters - Beneficiary ===")
    if not is_authenticated:
        logger.warning("Running Masters-Beneficiary without a confirmed login")

    async with record_result.case(TEST_CASE):
        await open_masters_tab(page, config, "Beneficiary")

        logger.info("Creating beneficiary '%s'", BENEFICIARY["name"])
        await page.get_by_text("add", exact=True).click()
        await expect(page.locator("#name")).to_contain_text("Name of beneficiary")
        await page.get_by_role("textbox").first.fill(BENEFICIARY["name"])
        await page.get_by_role("textbox", name="Search details of parents").fill(BENEFICIARY["parent_detail"])
        await page.get_by_role("option", name=BENEFICIARY["parent_detail"]).first.click()
        await page.get_by_role("spinbutton", name="Age of beneficiary").fill(BENEFICIARY["age"])
        await page.get_by_role("textbox", name="Father name").fill(BENEFICIARY["father_name"])
        await page.get_by_role("spinbutton", name="father age").fill(BENEFICIARY["father_age"])
        await page.get_by_role("button", name="Submit").click()
        await expect(page.locator("tbody")).to_contain_text(BENEFICIARY["name"])

        logger.info("Opening beneficiary for edit")
        await page.get_by_text("more_vert").first.click()
        await page.get_by_role("menuitem", name="edit Edit").click()
        await expect(page.locator(".mat-dialog-content")).to_be_visible()
        await page.get_by_role("button", name="close").click()

        logger.info("Deleting beneficiary")
        await page.get_by_text("more_vert").first.click()
        await page.get_by_role("menuitem", name="delete delete").click()
        await expect(page.locator("mat-dialog-actions")).to_contain_text("Yes")
        await page.get_by_role("button", name="Yes").click()
        await expect(page.locator("hot-toast-container")).to_contain_text(DELETED_TOAST)

        shared_data["beneficiaryCreated"] = BENEFICIARY["name"]
        shared_data["beneficiaryDeleted"] = True
        shared_data["mastersTestCompleted"] = True

    logger.info("Masters-Beneficiary module completed")
