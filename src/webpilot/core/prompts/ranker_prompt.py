"""Ranker Prompt - relevance scoring of search results."""

RANKER_PROMPT = """
For the given objective, rank the importance of information.
Your objective was this:
{objective}

Query string used for the search is this:
{query}

Your original plan step was this:
{step}

You have currently done the following:
{progress}

Return the top {top_n} results from the input data and score the importance
of each result from 0 to 10. Higher means more important. Refer to results by
their zero-based index in the input list.

Respond with a JSON object: {{"rankings": [{{"index": 0, "score": 8.5}}, ...]}}
"""


def format_ranker_prompt(objective: str, query: str, step: str, progress: str, top_n: int) -> str:
    return RANKER_PROMPT.format(
        objective=objective,
        query=query,
        step=step,
        progress=progress or "(nothing yet)",
        top_n=top_n,
    )
