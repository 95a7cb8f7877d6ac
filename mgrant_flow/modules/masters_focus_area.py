"""Masters: CSR Focus Area create/edit/delete."""

from __future__ import annotations

import logging
from typing import Any, Callable

from playwright.async_api import Page, expect

from mgrant_flow.auth.session import AuthSession
from mgrant_flow.core.recorder import ModuleRecorder
from mgrant_flow.core.registry import flow_module
from mgrant_flow.modules.masters_beneficiary import DELETED_TOAST, open_masters_tab

logger = logging.getLogger(__name__)

TEST_CASE = "TC009: CSR Focus Area Complete CRUD Management"
FOCUS_AREA = {"code": "011", "name": "Test FA", "schedule_vii": "SC01"}


@flow_module("Masters-FocusArea")
async def execute_tests(
    page: Page,
    log_step: Callable[[str], int],
    record_result: ModuleRecorder,
    shared_data: dict[str, Any],
    is_authenticated: bool,
    *,
    auth: AuthSession,
) -> None:
    """Create, edit and delete a CSR focus area."""
    config = auth.config
    logger.info("=== Module: Masters - CSR Focus Area ===")

    async with record_result.case(TEST_CASE):
        await open_masters_tab(page, config, "CSR Focus Area")

        logger.info("Creating focus area %s '%s'", FOCUS_AREA["code"], FOCUS_AREA["name"])
        await page.get_by_text("add", exact=True).click()
        await expect(page.locator("#code")).to_contain_text("Code")
        await page.locator('input[name="1"]').fill(FOCUS_AREA["code"])
        await page.get_by_role("textbox", name="Name").fill(FOCUS_AREA["name"])
        await page.get_by_label("", exact=True).locator("div").nth(2).click()
        await page.get_by_role("textbox", name="Search ScheduleVII").fill(FOCUS_AREA["schedule_vii"])
        await page.locator("mat-pseudo-checkbox").first.click()
        await page.locator(".cdk-overlay-backdrop.cdk-overlay-transparent-backdrop").click()
        await page.get_by_role("button", name="Submit").click()
        await expect(page.locator("tbody")).to_contain_text(FOCUS_AREA["name"])

        row = page.get_by_role("row").filter(has_text=FOCUS_AREA["name"]).first
        logger.info("Editing focus area")
        await row.locator("mat-icon").click()
        await page.get_by_role("menuitem", name="edit Edit").click()
        await expect(page.locator('input[name="1"]')).to_be_visible()
        await page.get_by_role("button", name="Submit").click()

        logger.info("Deleting focus area")
        await row.locator("mat-icon").click()
        await page.get_by_role("menuitem", name="delete delete").click()
        await expect(page.locator("mat-dialog-actions")).to_contain_text("Yes")
        await page.get_by_role("button", name="Yes").click()
        await expect(page.locator("dynamic-view")).to_contain_text(DELETED_TOAST)

        shared_data["focusAreaCreated"] = FOCUS_AREA["name"]
        shared_data["focusAreaDeleted"] = True
        shared_data["focusAreaTestCompleted"] = True

    logger.info("Masters-FocusArea module completed")
