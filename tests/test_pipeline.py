#!/usr/bin/env python3
"""
Tests for message processors, the processor pipeline and conversation state.
"""

import json

import pytest

import lmproc.config.config as config_module
from lmproc.config.config import ConfigManager
from lmproc.core.datamodels import Message, Role
from lmproc.core.exceptions import ProcessorConfigError, RetriesExceededError
from lmproc.core.results import Continue, Halt
from lmproc.engine.extraction import FencedWithHint, TagPair
from lmproc.engine.pipeline import Conversation, ProcessorPipeline, run_processors
from lmproc.engine.processors import (
    FunctionProcessor,
    JsonProcessor,
    MessageProcessor,
    ToolCallProcessor,
    as_processor,
)
from lmproc.engine.toolcall import BracketedCallParser, TaggedCallParser

DATA = {"subject": "RE: Things that happen", "body": "Main message body"}


class Recorder:
    """Processor that records calls and continues unchanged."""

    def __init__(self):
        self.calls = []

    def apply(self, state, message):
        self.calls.append(message)
        return Continue(message)


def always_halt(state, message):
    return Halt.with_error("nope")


# ============================================================================
# JsonProcessor Tests
# ============================================================================

class TestJsonProcessor:
    """Tests for JsonProcessor."""

    def test_converts_json_text(self):
        """Test JSON content is replaced with decoded data."""
        message = Message.assistant(json.dumps(DATA))
        result = JsonProcessor().apply(None, message)
        assert isinstance(result, Continue)
        assert result.message.content == DATA
        assert result.message.role == Role.ASSISTANT

    def test_does_not_mutate_input(self):
        message = Message.assistant(json.dumps(DATA))
        JsonProcessor().apply(None, message)
        assert message.content == json.dumps(DATA)

    def test_halts_on_invalid_json(self):
        """Test invalid JSON halts with a user feedback message."""
        message = Message.assistant('{"body":"Main message body","subj')
        result = JsonProcessor().apply(None, message)
        assert isinstance(result, Halt)
        assert result.feedback.role == Role.USER
        assert result.feedback.content == (
            "ERROR: Invalid JSON data: Unterminated string starting at: "
            "line 1 column 29 (char 28)"
        )

    def test_extracts_from_fence(self):
        text = f"Here's your requested JSON data:\n\n```json\n{json.dumps(DATA)}\n```\n"
        result = JsonProcessor(FencedWithHint("json")).apply(None, Message.assistant(text))
        assert result.message.content == DATA

    def test_halts_when_not_found(self):
        message = Message.assistant("There is content, but no JSON to be found!")
        result = JsonProcessor(FencedWithHint("json")).apply(None, message)
        assert isinstance(result, Halt)
        assert result.feedback.content == "ERROR: No JSON found"

    def test_halts_when_fenced_json_invalid(self):
        message = Message.assistant('```json\n{"thing"```')
        result = JsonProcessor(FencedWithHint("json")).apply(None, message)
        assert result.feedback.content == (
            "ERROR: Invalid JSON data: Expecting ':' delimiter: line 1 column 9 (char 8)"
        )

    def test_non_text_content(self):
        """Test already-decoded content is not decoded again."""
        result = JsonProcessor().apply(None, Message.assistant({"already": "decoded"}))
        assert isinstance(result, Halt)
        assert result.feedback.content == "ERROR: Expected text content to decode"

    def test_lenient(self):
        result = JsonProcessor(TagPair(), lenient=True).apply(
            None, Message.assistant("<json>{'value': 123,}</json>")
        )
        assert result.message.content == {"value": 123}


# ============================================================================
# ToolCallProcessor Tests
# ============================================================================

class TestToolCallProcessor:
    """Tests for ToolCallProcessor."""

    def test_bracketed_calls_in_metadata(self):
        message = Message.assistant("[get_users(), get_user(id=7)]")
        result = ToolCallProcessor(BracketedCallParser()).apply(None, message)
        assert isinstance(result, Continue)
        assert result.message.content == message.content
        assert result.message.metadata["tool_calls"] == [
            {"function_name": "get_users", "parameters": {}},
            {"function_name": "get_user", "parameters": {"id": 7}},
        ]
        assert result.message.is_tool_related

    def test_tagged_call_in_metadata(self):
        message = Message.assistant('<function=search>{"q": "cats"}</function>')
        result = ToolCallProcessor(TaggedCallParser()).apply(None, message)
        assert result.message.metadata["tool_calls"] == [
            {"function_name": "search", "parameters": {"q": "cats"}},
        ]

    def test_default_handler_detects_format(self):
        result = ToolCallProcessor().apply(None, Message.assistant("[ping()]"))
        assert result.message.metadata["tool_calls"][0]["function_name"] == "ping"

    def test_halts_on_parse_error(self):
        result = ToolCallProcessor().apply(None, Message.assistant('<function=x>{"a": 1}'))
        assert isinstance(result, Halt)
        assert result.feedback.content == "ERROR: Missing end tag '</function>'"


# ============================================================================
# Processor coercion Tests
# ============================================================================

class TestAsProcessor:
    """Tests for as_processor."""

    def test_processor_passes_through(self):
        processor = JsonProcessor()
        assert as_processor(processor) is processor
        assert isinstance(processor, MessageProcessor)

    def test_callable_is_wrapped(self):
        processor = as_processor(always_halt)
        assert isinstance(processor, FunctionProcessor)
        assert processor.name == "always_halt"
        assert isinstance(processor.apply(None, Message.assistant("x")), Halt)

    def test_list_rejected(self):
        """Test a list of processors is not itself a processor."""
        with pytest.raises(ProcessorConfigError):
            as_processor([JsonProcessor(), always_halt])

    def test_class_rejected(self):
        with pytest.raises(ProcessorConfigError, match="processor instance"):
            as_processor(JsonProcessor)

    def test_config_error_is_type_error(self):
        with pytest.raises(TypeError):
            as_processor(42)


# ============================================================================
# ProcessorPipeline Tests
# ============================================================================

class TestProcessorPipeline:
    """Tests for ProcessorPipeline and run_processors."""

    def test_empty_pipeline_continues(self):
        message = Message.assistant("hello")
        outcome = run_processors([], "state", message)
        assert outcome.result == Continue(message)
        assert not outcome.halted
        assert outcome.state == "state"

    def test_continue_feeds_next_processor(self):
        """Test later processors see transformed content."""

        def add_flag(state, message):
            assert message.content == DATA
            return Continue(message.with_content({**message.content, "checked": True}))

        outcome = run_processors([JsonProcessor(), add_flag], None, Message.assistant(json.dumps(DATA)))
        assert outcome.message.content == {**DATA, "checked": True}

    def test_halt_stops_pipeline(self):
        """Test a halt in the 2nd of 3 processors skips the 3rd."""
        first, third = Recorder(), Recorder()
        state = Conversation(messages=[Message.user("hi")])
        snapshot = state.model_copy(deep=True)
        message = Message.assistant("text")

        outcome = run_processors([first, always_halt, third], state, message)

        assert outcome.halted
        assert len(first.calls) == 1
        assert third.calls == []
        assert outcome.state is state
        assert state == snapshot
        assert outcome.message == Message.user("ERROR: nope")
        assert outcome.failed_message == message
        assert outcome.processor_index == 1

    def test_failed_message_is_transformed_message(self):
        """Test failed_message is what the halting processor received."""
        outcome = run_processors(
            [JsonProcessor(), always_halt], None, Message.assistant('{"a": 1}')
        )
        assert outcome.failed_message.content == {"a": 1}

    def test_exception_becomes_halt(self):
        """Test an exception inside a processor halts with an error message."""

        def boom(state, message):
            raise RuntimeError("boom")

        third = Recorder()
        outcome = run_processors([boom, third], None, Message.assistant("x"))
        assert outcome.halted
        assert outcome.message.role == Role.USER
        assert outcome.message.content == (
            "ERROR: An exception was raised! Exception: RuntimeError('boom')"
        )
        assert third.calls == []

    def test_bad_return_value_raises(self):
        with pytest.raises(ProcessorConfigError, match="expected Continue or Halt"):
            run_processors([lambda s, m: None], None, Message.assistant("x"))

    def test_nested_list_rejected(self):
        with pytest.raises(ProcessorConfigError):
            ProcessorPipeline([[JsonProcessor()]])

    def test_single_function_rejected(self):
        """Test a bare function is not a processor sequence."""
        with pytest.raises(ProcessorConfigError, match="sequence of processors"):
            ProcessorPipeline(always_halt)

    def test_len_and_iter(self):
        pipeline = ProcessorPipeline([JsonProcessor(), always_halt])
        assert len(pipeline) == 2
        assert all(isinstance(p, MessageProcessor) for p in pipeline)

    def test_verbose_logs_steps(self, caplog):
        caplog.set_level("INFO", logger="lmproc")
        ProcessorPipeline([JsonProcessor()], verbose=True).run(None, Message.assistant("{}"))
        assert "executed" in caplog.text


# ============================================================================
# Conversation Tests
# ============================================================================

class TestConversation:
    """Tests for Conversation state."""

    @pytest.fixture
    def conversation(self):
        return Conversation(messages=[Message.user("Give me JSON")]).with_processors(
            JsonProcessor(FencedWithHint("json"))
        )

    def test_success_adds_processed_message(self, conversation):
        updated = conversation.process_message(
            Message.assistant(f"```json\n{json.dumps(DATA)}\n```")
        )
        assert updated.last_message.content == DATA
        assert len(updated.messages) == 2
        assert updated.current_failure_count == 0
        assert not updated.needs_response
        # original is untouched
        assert len(conversation.messages) == 1

    def test_halt_adds_failed_and_feedback(self, conversation):
        failed = Message.assistant("no json here")
        updated = conversation.process_message(failed)
        assert updated.messages[-2] == failed
        assert updated.last_message == Message.user("ERROR: No JSON found")
        assert updated.current_failure_count == 1
        assert updated.needs_response

    def test_success_resets_failure_count(self, conversation):
        updated = conversation.process_message(Message.assistant("bad"))
        updated = updated.process_message(Message.assistant("```json\n{}\n```"))
        assert updated.current_failure_count == 0

    def test_tool_related_success_keeps_failure_count(self):
        conversation = Conversation(current_failure_count=2).with_processors(ToolCallProcessor())
        updated = conversation.process_message(Message.assistant("[lookup(id=1)]"))
        assert updated.last_message.metadata["tool_calls"]
        assert updated.current_failure_count == 2

    def test_non_assistant_messages_skip_processors(self):
        recorder = Recorder()
        conversation = Conversation().with_processors(recorder)
        updated = conversation.process_message(Message.user("not json"))
        assert recorder.calls == []
        assert updated.last_message.content == "not json"

    def test_no_processors_accepts_message(self):
        updated = Conversation(current_failure_count=1).process_message(Message.assistant("hi"))
        assert updated.last_message.content == "hi"
        assert updated.current_failure_count == 0

    def test_retries_exhausted(self, conversation):
        conversation = conversation.model_copy(update={"max_retry_count": 2})
        for _ in range(2):
            conversation.ensure_can_retry()
            conversation = conversation.process_message(Message.assistant("bad"))
        assert not conversation.can_retry
        with pytest.raises(RetriesExceededError, match="Exceeded max failure count"):
            conversation.ensure_can_retry()

    def test_with_processors_rejects_list(self):
        """Test passing a list where a processor is expected."""
        with pytest.raises(ProcessorConfigError):
            Conversation().with_processors([JsonProcessor()])

    def test_processors_excluded_from_dump(self, conversation):
        assert "processors" not in conversation.model_dump()

    def test_callbacks_on_halt(self, conversation):
        events = []
        conversation = conversation.model_copy(update={"callbacks": {
            "on_message_processing_error": lambda conv, msg: events.append(("error", msg.content)),
            "on_error_message_created": lambda conv, msg: events.append(
                ("feedback", msg.content, conv.current_failure_count)
            ),
            "on_message_processed": lambda conv, msg: events.append(("processed",)),
        }})
        conversation.process_message(Message.assistant("no json here"))
        assert events == [
            ("error", "no json here"),
            ("feedback", "ERROR: No JSON found", 1),
        ]

    def test_callbacks_on_success(self):
        seen = []
        conversation = Conversation(
            callbacks={"on_message_processed": lambda conv, msg: seen.append((conv, msg))},
        ).with_processors(JsonProcessor())
        updated = conversation.process_message(Message.assistant('{"a": 1}'))
        assert len(seen) == 1
        assert seen[0][0] is updated
        assert seen[0][1].content == {"a": 1}

    def test_unknown_callback_rejected(self):
        with pytest.raises(ValueError, match="Unknown callback events"):
            Conversation(callbacks={"on_llm_new_delta": print})

    def test_from_config(self, tmp_path, monkeypatch):
        """Test defaults are read from the config file."""
        manager = ConfigManager()
        manager.CONFIG_DIR = tmp_path
        manager.CONFIG_FILE = tmp_path / "config.json"
        manager.CONFIG_FILE.write_text(json.dumps({"max_retry_count": 5, "verbose": True}))
        monkeypatch.setattr(config_module, "_manager", manager)

        conversation = Conversation.from_config([JsonProcessor()])
        assert conversation.max_retry_count == 5
        assert conversation.verbose is True
        assert len(conversation.processors) == 1

    def test_from_config_overrides(self, tmp_path, monkeypatch):
        manager = ConfigManager()
        manager.CONFIG_DIR = tmp_path
        manager.CONFIG_FILE = tmp_path / "config.json"
        monkeypatch.setattr(config_module, "_manager", manager)

        conversation = Conversation.from_config(max_retry_count=1)
        assert conversation.max_retry_count == 1
        assert conversation.verbose is False
