"""beachpatrol: a long-lived browser session driven by one-shot local commands."""
