from docrag.context import assemble_context
from docrag.models import Source


def _source(excerpt: str) -> Source:
    return Source(document_id=1, filename="f", original_name="f", excerpt=excerpt, relevance_score=0.5)


def test_excerpts_are_joined_in_rank_order():
    assert assemble_context([_source("first"), _source("second")]) == "first\n\nsecond"


def test_context_is_truncated_to_max_length():
    context = assemble_context([_source("a" * 30), _source("b" * 30)], max_length=40)

    assert context == "a" * 30 + "\n\n" + "b" * 8


def test_empty_sources_give_empty_context():
    assert assemble_context([]) == ""


def test_default_limit_is_four_thousand_characters():
    assert len(assemble_context([_source("x" * 5000)])) == 4000
