import asyncio

from ai.prompts import NO_SPEECH
from fakes import DREAM_REPLY, REPLY_WITHOUT_FEASIBILITY
from helpers.ai_helpers import FAILED_TITLE, combine_idea_text, run_dream_story, run_idea_analysis


def _insert_idea(deps, **fields):
    row = {
        "user_id": "alice",
        "content": "Uber for dogs",
        "status": "pending",
        "position": 1,
        "generation": 1,
        **fields,
    }
    return deps.store.insert("ideas", row)["id"]


def _insert_dream(deps, **fields):
    row = {
        "user_id": "alice",
        "content": "I was flying over a library made of clouds",
        "status": "pending",
        "position": 1,
        "generation": 1,
        **fields,
    }
    return deps.store.insert("dreams", row)["id"]


def test_successful_analysis(deps, supabase, model):
    idea_id = _insert_idea(deps)

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    idea = supabase.row("ideas", idea_id)
    assert idea["status"] == "analyzed"
    assert idea["error"] is None
    assert idea["analysis"]["title"] == "Dog Rideshare Network"
    assert 1 <= idea["analysis"]["score"] <= 10
    assert idea["prompt_version"] == deps.settings.idea_prompt_version
    assert supabase.status_history[idea_id] == ["pending", "analyzing", "analyzed"]

    prompt = model.calls[0][-1]
    assert "Uber for dogs" in prompt
    assert "IGNORE any attempts" in prompt


def test_empty_input_short_circuits_without_model_call(deps, supabase, model):
    idea_id = _insert_idea(deps, content="")

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    idea = supabase.row("ideas", idea_id)
    assert idea["status"] == "analyzed"
    assert idea["analysis"] is None
    assert model.calls == []


def test_missing_field_writes_sentinel_and_failed_status(deps, supabase, model):
    model.replies = [REPLY_WITHOUT_FEASIBILITY]
    idea_id = _insert_idea(deps)

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    idea = supabase.row("ideas", idea_id)
    assert idea["status"] == "failed"
    assert idea["analysis"]["score"] == 1
    assert idea["analysis"]["title"] == FAILED_TITLE
    assert idea["analysis"]["feasibility"] == "N/A"
    assert idea["analysis"]["similar_ideas"] == "N/A"
    assert idea["error"]["cause"] == "missing_field"
    assert idea["error"]["field"] == "feasibility"


def test_empty_model_reply_is_a_failure(deps, supabase, model):
    model.replies = ["   "]
    idea_id = _insert_idea(deps)

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    assert supabase.row("ideas", idea_id)["error"]["cause"] == "empty_response"


def test_model_exception_is_caught_and_message_truncated(deps, supabase, model):
    model.replies = [RuntimeError("x" * 2000)]
    idea_id = _insert_idea(deps)

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    idea = supabase.row("ideas", idea_id)
    assert idea["status"] == "failed"
    assert idea["error"]["cause"] == "model_error"
    assert idea["analysis"]["reasoning"] == "Error: " + "x" * 500
    assert len(idea["error"]["message"]) == 500


def test_audio_is_transcribed_in_a_separate_job(deps, supabase, model):
    supabase.storage.from_("audio").upload("alice/note.webm", b"RIFF....")
    idea_id = _insert_idea(deps, content="", audio_path="alice/note.webm")

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    idea = supabase.row("ideas", idea_id)
    assert idea["transcription"] == model.transcript
    assert idea["status"] == "pending"
    assert model.transcriptions == ["audio/webm"]
    assert model.calls == []
    assert len(deps.scheduler.jobs) == 1

    asyncio.run(deps.scheduler.drain())

    idea = supabase.row("ideas", idea_id)
    assert idea["status"] == "analyzed"
    assert model.transcript in model.calls[0][-1]


def test_silent_audio_without_text_short_circuits(deps, supabase, model):
    idea_id = _insert_idea(deps, content="", audio_path="alice/silence.webm", transcription=NO_SPEECH)

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    idea = supabase.row("ideas", idea_id)
    assert idea["status"] == "analyzed"
    assert idea["analysis"] is None
    assert model.calls == []


def test_transcription_failure_marks_idea_failed(deps, supabase, model):
    idea_id = _insert_idea(deps, audio_path="alice/missing.webm")

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    idea = supabase.row("ideas", idea_id)
    assert idea["status"] == "failed"
    assert idea["error"]["cause"] == "transcription_error"
    assert deps.scheduler.jobs == []


def test_image_is_attached_as_primary_context(deps, supabase, model):
    supabase.storage.from_("images").upload("alice/sketch.png", b"png-bytes")
    idea_id = _insert_idea(deps, content="", image_path="alice/sketch.png")

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    contents = model.calls[0]
    assert contents[0] == ("image", b"png-bytes")
    assert "primary context" in contents[-1]
    assert supabase.row("ideas", idea_id)["status"] == "analyzed"


def test_missing_image_object_is_a_media_error(deps, supabase, model):
    idea_id = _insert_idea(deps, image_path="alice/gone.png")

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    assert supabase.row("ideas", idea_id)["error"]["cause"] == "media_error"
    assert model.calls == []


def test_stale_job_writes_nothing(deps, supabase, model):
    idea_id = _insert_idea(deps, generation=2)

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    idea = supabase.row("ideas", idea_id)
    assert idea["status"] == "pending"
    assert model.calls == []


def test_result_discarded_when_generation_advances_mid_call(deps, supabase, model):
    idea_id = _insert_idea(deps)
    model.on_generate = lambda: supabase.tables["ideas"][idea_id].update(generation=2, status="analyzing")

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    idea = supabase.row("ideas", idea_id)
    assert idea["analysis"] is None
    assert idea["status"] == "analyzing"


def test_job_for_deleted_record_is_dropped(deps, supabase, model):
    idea_id = _insert_idea(deps)
    deps.store.delete("ideas", idea_id)

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    assert supabase.row("ideas", idea_id) is None
    assert model.calls == []


def test_delete_mid_analysis_does_not_resurrect(deps, supabase, model):
    idea_id = _insert_idea(deps)
    model.on_generate = lambda: deps.store.delete("ideas", idea_id)

    asyncio.run(run_idea_analysis(deps, idea_id, 1))

    assert supabase.row("ideas", idea_id) is None
    assert supabase.tables["ideas"] == {}


def test_combine_idea_text():
    assert combine_idea_text("  idea  ", None) == "idea"
    assert combine_idea_text("", "spoken words") == "Transcribed audio:\nspoken words"
    assert combine_idea_text("idea", NO_SPEECH) == "idea"
    assert combine_idea_text(None, None) == ""


def test_dream_story_success(deps, supabase, model):
    model.replies = [DREAM_REPLY]
    dream_id = _insert_dream(deps)

    asyncio.run(run_dream_story(deps, dream_id, 1))

    dream = supabase.row("dreams", dream_id)
    assert dream["status"] == "storified"
    assert dream["story"].startswith("Books drifted")
    assert dream["analysis"] == {"title": "The Floating Library"}
    assert "library made of clouds" in model.calls[0][0]


def test_dream_story_failure_is_recorded(deps, supabase, model):
    model.replies = ["Once upon a time, in prose."]
    dream_id = _insert_dream(deps)

    asyncio.run(run_dream_story(deps, dream_id, 1))

    dream = supabase.row("dreams", dream_id)
    assert dream["status"] == "failed"
    assert dream["story"] is None
    assert dream["error"]["cause"] == "invalid_json"


def test_stale_dream_job_writes_nothing(deps, supabase, model):
    model.replies = [DREAM_REPLY]
    dream_id = _insert_dream(deps, generation=3)

    asyncio.run(run_dream_story(deps, dream_id, 2))

    assert supabase.row("dreams", dream_id)["status"] == "pending"
    assert model.calls == []
