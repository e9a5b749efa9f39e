import pytest

from wellness.checkin import GAD7_BANDS, PHQ9_BANDS, recommendations, score_checkin, severity


def _answers(gad7="Not at all", phq9="Not at all", **overrides):
    answers = {str(i): gad7 for i in range(1, 8)}
    answers.update({str(i): phq9 for i in range(8, 17)})
    answers.update(overrides)
    return answers


@pytest.mark.parametrize("score,label", [(0, "minimal"), (4, "minimal"), (5, "mild"), (10, "moderate"), (21, "severe")])
def test_gad7_bands(score, label):
    assert severity(score, GAD7_BANDS) == label


@pytest.mark.parametrize("score,label", [(9, "mild"), (14, "moderate"), (15, "moderately severe"), (20, "severe")])
def test_phq9_bands(score, label):
    assert severity(score, PHQ9_BANDS) == label


def test_all_clear():
    checkin = score_checkin("alice", _answers())
    assert (checkin.gad7_score, checkin.gad7_severity) == (0, "minimal")
    assert (checkin.phq9_score, checkin.phq9_severity) == (0, "minimal")
    assert checkin.self_harm_flag is False
    assert [r["key"] for r in recommendations(checkin)] == ["chat", "resources", "counselor"]


def test_scores_sum_per_instrument():
    checkin = score_checkin("alice", _answers(gad7="Several days", phq9="Nearly every day"))
    assert checkin.gad7_score == 7
    assert checkin.gad7_severity == "mild"
    assert checkin.phq9_score == 27
    assert checkin.phq9_severity == "severe"
    assert checkin.self_harm_flag is True


def test_self_harm_item_puts_counselor_first():
    checkin = score_checkin("alice", _answers(**{"16": "Several days"}))
    assert checkin.self_harm_flag is True
    assert checkin.phq9_severity == "minimal"
    assert recommendations(checkin)[0]["title"] == "Connect with a Pro"


def test_integer_keys_are_accepted():
    answers = {int(k): v for k, v in _answers().items()}
    assert score_checkin("alice", answers).answers["1"] == "Not at all"


@pytest.mark.parametrize("answers,message", [
    ({"1": "Not at all"}, "Missing answers"),
    (_answers(**{"17": "Not at all"}), "Unknown question id"),
    (_answers(**{"abc": "Not at all"}), "Unknown question id"),
    (_answers(**{"3": "Sometimes"}), "Unknown answer"),
    (None, "answers must be an object"),
])
def test_invalid_answers(answers, message):
    with pytest.raises(ValueError, match=message):
        score_checkin("alice", answers)
