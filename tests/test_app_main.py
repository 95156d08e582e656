import pytest

from app_main import build_config, build_parser, main
from quiz_engine.core.markdown_math_renderer import renderer
from quiz_engine.core.models import Question, QuizMode
from quiz_engine.core.ordered_set import OrderedIdSet


@pytest.mark.parametrize(
    ("argv", "mode", "time_limit"),
    [
        (["bank.txt"], QuizMode.PRACTICE, None),
        (["bank.txt", "--mode", "challenge", "-n", "10"], QuizMode.CHALLENGE, 450),
        (["bank.txt", "--mode", "exam"], QuizMode.EXAM, 1800),
        (["bank.txt", "--mode", "exam", "--time-limit", "60"], QuizMode.EXAM, 60),
        (["bank.txt", "--mode", "exam", "--untimed"], QuizMode.EXAM, None),
    ],
)
def test_build_config_per_mode(argv, mode, time_limit):
    config = build_config(build_parser().parse_args(argv))

    assert config.mode == mode
    assert config.time_limit == time_limit


def test_build_config_passes_identity_through():
    args = build_parser().parse_args(
        ["bank.txt", "--seed", "s-1", "--session-id", "abc", "--specialty", "Endo", "--specialty-id", "endo"]
    )

    config = build_config(args)

    assert (config.seed, config.session_id) == ("s-1", "abc")
    assert (config.specialty_name, config.specialty_id) == ("Endo", "endo")


def test_main_exits_when_bank_is_missing(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path / "missing.txt")])

    assert excinfo.value.code == 1


def test_renderer_produces_question_and_option_html():
    question = Question(id="r", text="What is **bold**?", options=("`code`", "$x^2$"), correct_answer=0)

    rendered = renderer.render_question(question)

    assert "<strong>bold</strong>" in rendered["question_html"]
    assert rendered["options_html"] == ["<code>code</code>", "$x^2$"]
    assert renderer.render_fragment("   ") == "<p><em>No content provided.</em></p>"


def test_ordered_id_set_keeps_insertion_order():
    ids = OrderedIdSet.from_sequence(["b", "a", "b", "c"])

    assert ids.to_list() == ["b", "a", "c"]
    assert not ids.add("a")
    assert ids.discard("a")
    assert not ids.discard("a")
    assert ids == {"b", "c"}
    assert OrderedIdSet.from_sequence(None) == set()
