"""The classic Selenium smoke test: fill the demo web form and submit it.

See https://www.selenium.dev/documentation/webdriver/getting_started/first_script/
"""

import logging

logger = logging.getLogger("beachpatrol.commands.smoke_test")

FORM_URL = "https://www.selenium.dev/selenium/web/web-form.html"


async def _force_instant_scroll(page):
    # Some sites (bootstrap ones, for example) enable smooth scrolling
    await page.add_style_tag(content="html { scroll-behavior: initial !important; }")


async def run(ctx, *args):
    page = await ctx.context.new_page()
    await page.goto(FORM_URL)

    await _force_instant_scroll(page)

    title = await page.title()
    logger.info(f"Title is: {title}")

    text_box = page.locator("input[name=my-text]")
    submit_button = page.locator("button")

    await text_box.fill("Playwright")
    await submit_button.scroll_into_view_if_needed()
    await submit_button.click()

    message = await page.locator("#message").inner_text()
    logger.info(f"Message is: {message}")
