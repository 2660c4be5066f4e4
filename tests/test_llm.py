"""
Tests for the chat-completions wrapper, with the OpenAI client mocked out
"""
from unittest.mock import MagicMock, patch

import pytest

from studysets.services import llm as llm_module
from studysets.services.llm import LLMNotConfigured, QuizLLM, clean_json_like, quiz_response_format


def mock_client(*contents):
    client = MagicMock()
    client.chat.completions.create.side_effect = [
        MagicMock(choices=[MagicMock(message=MagicMock(content=c))]) for c in contents
    ]
    return client


def last_call_kwargs(client):
    return client.chat.completions.create.call_args.kwargs


class TestHelpers:
    def test_clean_json_like_strips_fences(self):
        assert clean_json_like('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert clean_json_like('  {"a": 1}  ') == '{"a": 1}'

    def test_response_format_schema(self):
        fmt = quiz_response_format(7)
        assert fmt["type"] == "json_schema"
        schema = fmt["json_schema"]["schema"]
        assert "quiz_questions" in schema["properties"]
        assert "exactly 7" in schema["properties"]["quiz_questions"]["description"]


class TestGenerateQuestions:
    def test_text_request(self):
        client = mock_client('{"quiz_questions": []}')
        llm = QuizLLM(client, quiz_model="quiz-model")

        assert llm.generate_questions("Mitosis notes", 3) == '{"quiz_questions": []}'
        kwargs = last_call_kwargs(client)
        assert kwargs["model"] == "quiz-model"
        assert "EXACTLY 3" in kwargs["messages"][1]["content"]
        assert "Mitosis notes" in kwargs["messages"][1]["content"]
        assert kwargs["response_format"]["json_schema"]["name"] == "quiz_questions"

    def test_image_request(self):
        client = mock_client("[]")
        llm = QuizLLM(client, vision_model="vision-model")
        llm.generate_questions_from_image("https://example.com/a.png", 2)

        kwargs = last_call_kwargs(client)
        assert kwargs["model"] == "vision-model"
        assert kwargs["max_tokens"] == 4000
        assert "include_image" in kwargs["messages"][0]["content"]
        assert kwargs["messages"][1]["content"][1]["image_url"]["url"] == "https://example.com/a.png"

    def test_empty_content_returns_empty_string(self):
        llm = QuizLLM(mock_client(None))
        assert llm.generate_questions("notes", 1) == ""


class TestInferSubject:
    def test_quotes_and_periods_removed(self):
        llm = QuizLLM(mock_client('"Computer Science."'))
        assert llm.infer_subject("What is a linked list?", "Data Structures") == "Computer Science"

    def test_long_answer_truncated(self):
        llm = QuizLLM(mock_client("Electrical and Computer Engineering Studies"))
        assert llm.infer_subject("What is Ohm's law?", "Circuits") == "Electrical and Computer"

    def test_api_error_returns_none(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = RuntimeError("timeout")
        assert QuizLLM(client).infer_subject("Q", "C") is None

    def test_blank_answer_returns_none(self):
        assert QuizLLM(mock_client("  ")).infer_subject("Q", "C") is None


class TestStudySetNames:
    def test_text_title_uses_first_1000_characters(self):
        client = mock_client("'Cell Biology Essentials'")
        name = QuizLLM(client).generate_study_set_name("x" * 5000)

        assert name == "Cell Biology Essentials"
        user_message = last_call_kwargs(client)["messages"][1]["content"]
        assert user_message.count("x") == 1000

    def test_image_title(self):
        client = mock_client('"Plant Cell Diagram"')
        assert QuizLLM(client).generate_study_set_name_from_image("https://example.com/p.png") == "Plant Cell Diagram"


class TestGetLLM:
    def test_missing_key_raises(self):
        with patch.object(llm_module.config, "OPENAI_API_KEY", ""):
            with pytest.raises(LLMNotConfigured):
                llm_module.get_llm()

    def test_client_built_from_config(self):
        with patch.object(llm_module.config, "OPENAI_API_KEY", "sk-test"):
            llm = llm_module.get_llm()
        assert isinstance(llm, QuizLLM)
