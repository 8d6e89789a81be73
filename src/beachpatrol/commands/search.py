"""Open a new tab with a Google search for the given terms.

    beachmsg search cats and dogs
"""

from urllib.parse import quote


async def run(ctx, *search_terms):
    page = await ctx.context.new_page()
    query = quote(" ".join(search_terms), safe="")
    await page.goto(f"https://www.google.com/search?q={query}")
