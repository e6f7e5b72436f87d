import pytest

from conftest import http_response
from core.errors import NetworkError, ProtocolError
from solvers.challenge import (
    CandidateRef,
    CaptchaChallenge,
    ChallengeClient,
    extract_prompt,
    parse_challenge,
)


def payload(**overrides):
    data = {
        "session": "tok123",
        "id_prefix": "cc_",
        "question_i": "Sicherheitsfrage: Klicke auf den Apfel.",
        "answers": ["a1", "a2", "a3", "a4"],
    }
    data.update(overrides)
    return data


class TestExtractPrompt:
    """Question text normalisation."""

    def test_strips_prefix_and_period(self):
        assert extract_prompt("Sicherheitsfrage: Klicke auf den Apfel.") == "Klicke auf den Apfel"

    def test_without_prefix(self):
        assert extract_prompt("Klicke auf die Katze.") == "Klicke auf die Katze"

    def test_missing_period(self):
        assert extract_prompt("Welches Bild zeigt eine Katze?") is None


class TestParseChallenge:
    """Validation of the action=new response."""

    def test_valid_payload(self):
        challenge = parse_challenge(payload())
        assert challenge.session_token == "tok123"
        assert challenge.id_prefix == "cc_"
        assert challenge.question == "Sicherheitsfrage: Klicke auf den Apfel."
        assert challenge.prompt == "Klicke auf den Apfel"
        assert challenge.answer_ids == ("a1", "a2", "a3", "a4")
        assert all(c.image is None for c in challenge.candidates)

    @pytest.mark.parametrize("field", ["session", "id_prefix", "question_i", "answers"])
    def test_missing_field_is_named(self, field):
        data = payload()
        del data[field]
        with pytest.raises(ProtocolError) as exc:
            parse_challenge(data)
        assert exc.value.field == field

    def test_wrong_type_is_named(self):
        with pytest.raises(ProtocolError) as exc:
            parse_challenge(payload(session=42))
        assert exc.value.field == "session"

    def test_answers_not_a_list(self):
        with pytest.raises(ProtocolError) as exc:
            parse_challenge(payload(answers="a1"))
        assert exc.value.field == "answers"

    def test_empty_answers(self):
        with pytest.raises(ProtocolError) as exc:
            parse_challenge(payload(answers=[]))
        assert exc.value.field == "answers"

    def test_non_string_answer(self):
        with pytest.raises(ProtocolError) as exc:
            parse_challenge(payload(answers=["a1", 2]))
        assert exc.value.field == "answers[1]"

    def test_question_without_period(self):
        with pytest.raises(ProtocolError) as exc:
            parse_challenge(payload(question_i="Welches Bild zeigt eine Katze?"))
        assert exc.value.field == "question_i"

    def test_root_not_object(self):
        with pytest.raises(ProtocolError):
            parse_challenge(["a", "b"])


class TestCaptchaChallenge:
    """Immutable challenge helpers."""

    def test_with_images_keeps_order(self):
        challenge = CaptchaChallenge(
            "t", "p", "Q: x.", (CandidateRef("a"), CandidateRef("b")),
        )
        filled = challenge.with_images((b"1", b"2"))
        assert [c.image for c in filled.candidates] == [b"1", b"2"]
        assert challenge.candidates[0].image is None

    def test_with_images_length_mismatch(self):
        challenge = CaptchaChallenge("t", "p", "Q: x.", (CandidateRef("a"),))
        with pytest.raises(ValueError):
            challenge.with_images((b"1", b"2"))


class TestChallengeClient:
    """Requests sent to the Captcheck API."""

    @pytest.mark.asyncio
    async def test_fetch_sends_referer_and_action(self, mock_client):
        mock_client.get.return_value = http_response(
            b'{"session": "tok", "id_prefix": "p", '
            b'"question_i": "Frage: Klicke auf den Stern.", "answers": ["x", "y"]}'
        )
        challenge = await ChallengeClient(mock_client).fetch(77, 3)

        assert challenge.answer_ids == ("x", "y")
        args, kwargs = mock_client.get.call_args
        assert args[0] == "https://captcha.anime4you.one/Captcheck/api.php"
        assert kwargs["params"] == {"action": "new"}
        assert kwargs["headers"]["Referer"] == "https://www.anime4you.one/show/1/aid/77/epi/3"
        assert "Cookie" not in kwargs["headers"]

    @pytest.mark.asyncio
    async def test_fetch_rejects_non_json(self, mock_client):
        mock_client.get.return_value = http_response(b"<html>maintenance</html>")
        with pytest.raises(ProtocolError):
            await ChallengeClient(mock_client).fetch(1, 1)

    @pytest.mark.asyncio
    async def test_fetch_candidate_image(self, mock_client):
        mock_client.get.return_value = http_response(b"\x89PNG...")
        challenge = CaptchaChallenge("tok", "p", "Q: x.", (CandidateRef("c9"),))
        body = await ChallengeClient(mock_client).fetch_candidate_image(challenge, "c9", 5, 6)

        assert body == b"\x89PNG..."
        kwargs = mock_client.get.call_args[1]
        assert kwargs["params"] == {"action": "img", "s": "tok", "c": "c9"}
        assert kwargs["headers"]["Referer"].endswith("/aid/5/epi/6")

    @pytest.mark.asyncio
    async def test_image_network_error_propagates(self, mock_client):
        mock_client.get.side_effect = NetworkError("HTTP 404", status=404)
        challenge = CaptchaChallenge("tok", "p", "Q: x.", (CandidateRef("c9"),))
        with pytest.raises(NetworkError):
            await ChallengeClient(mock_client).fetch_candidate_image(challenge, "c9", 5, 6)
