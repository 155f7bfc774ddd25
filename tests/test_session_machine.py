"""
Test cases for the session state machine
"""
import pytest

from models.listing_models import EnhancedImage, EnhancementState, ListingDraft, SessionStage
from models.pipeline_errors import (
    AnalysisInProgress,
    CapacityExceeded,
    EnhancementPending,
    InvalidTransition,
    MissingCredential,
    NoImages,
    SelectionUnavailable,
)
from services.session.session_machine import MAX_IMAGES, SessionMachine


def _succeed(machine, image):
    machine.enhancement_completed(image.id, EnhancedImage(b"enh", b"norm"), f"enhanced://{image.id}")


def test_first_image_moves_capture_to_reviewing():
    machine = SessionMachine()
    assert machine.stage is SessionStage.CAPTURE

    image = machine.add_image(b"raw", "file://a.jpg")

    assert machine.stage is SessionStage.REVIEWING
    assert image.enhancement_state is EnhancementState.PENDING
    assert machine.use_enhanced(image.id) is True


@pytest.mark.parametrize("count", range(1, MAX_IMAGES + 1))
def test_add_image_accepts_up_to_five(count):
    machine = SessionMachine()
    for i in range(count):
        machine.add_image(b"raw%d" % i, f"file://{i}.jpg")
    assert len(machine.images) == count


def test_sixth_image_is_rejected_and_images_unchanged():
    """
    Test: Add a sixth photo
    Confirm: CapacityExceeded raised, session keeps exactly five photos
    """
    machine = SessionMachine()
    for i in range(MAX_IMAGES):
        machine.add_image(b"raw%d" % i, f"file://{i}.jpg")
    before = [image.id for image in machine.images]

    with pytest.raises(CapacityExceeded):
        machine.add_image(b"raw6", "file://6.jpg")

    assert [image.id for image in machine.images] == before


def test_image_without_bytes_is_failed_immediately():
    machine = SessionMachine()
    image = machine.add_image(None, "file://broken.jpg")

    assert image.enhancement_state is EnhancementState.FAILED
    assert machine.use_enhanced(image.id) is False


def test_enhancement_success_sets_both_enhanced_fields():
    machine = SessionMachine()
    image = machine.add_image(b"raw", "file://a.jpg")
    _succeed(machine, image)

    assert image.enhancement_state is EnhancementState.SUCCEEDED
    assert image.enhanced_bytes == b"enh"
    assert image.enhanced_display_ref == f"enhanced://{image.id}"
    assert image.submission_bytes == b"norm"


def test_enhancement_failure_forces_original_selection():
    machine = SessionMachine()
    image = machine.add_image(b"raw", "file://a.jpg")
    machine.enhancement_completed(image.id, None)

    assert image.enhancement_state is EnhancementState.FAILED
    assert image.enhanced_bytes is None and image.enhanced_display_ref is None
    assert machine.use_enhanced(image.id) is False


def test_enhancement_completion_is_single_transition():
    machine = SessionMachine()
    image = machine.add_image(b"raw", "file://a.jpg")
    machine.enhancement_completed(image.id, None)
    _succeed(machine, image)

    assert image.enhancement_state is EnhancementState.FAILED


def test_completion_for_removed_image_is_noop():
    machine = SessionMachine()
    keep = machine.add_image(b"keep", "file://keep.jpg")
    gone = machine.add_image(b"gone", "file://gone.jpg")
    machine.remove_image(gone.id)

    _succeed(machine, gone)

    assert [image.id for image in machine.images] == [keep.id]
    assert gone.id not in machine.state.use_enhanced_by_image


def test_remove_unknown_image_is_noop():
    machine = SessionMachine()
    machine.add_image(b"raw", "file://a.jpg")
    machine.remove_image("does-not-exist")
    assert len(machine.images) == 1


def test_remove_image_clamps_selected_index():
    machine = SessionMachine()
    images = [machine.add_image(b"raw%d" % i, f"file://{i}.jpg") for i in range(3)]
    machine.select(2)

    machine.remove_image(images[2].id)

    assert machine.state.selected_index == 1


def test_removing_last_image_returns_to_capture():
    machine = SessionMachine()
    image = machine.add_image(b"raw", "file://a.jpg")
    machine.remove_image(image.id)
    assert machine.stage is SessionStage.CAPTURE
    assert machine.state.selected_index == 0


def test_remove_image_ignored_outside_reviewing():
    machine = SessionMachine()
    image = machine.add_image(b"raw", "file://a.jpg")
    _succeed(machine, image)
    machine.begin_analysis(credential_configured=True)

    machine.remove_image(image.id)

    assert len(machine.images) == 1


def test_toggle_selection_requires_successful_enhancement():
    machine = SessionMachine()
    pending = machine.add_image(b"raw", "file://a.jpg")

    with pytest.raises(SelectionUnavailable):
        machine.toggle_selection(pending.id, False)
    assert machine.state.use_enhanced_by_image == {pending.id: True}

    machine.enhancement_completed(pending.id, None)
    with pytest.raises(SelectionUnavailable):
        machine.toggle_selection(pending.id, True)
    assert machine.state.use_enhanced_by_image == {pending.id: False}


def test_toggle_selection_on_enhanced_image():
    machine = SessionMachine()
    image = machine.add_image(b"raw", "file://a.jpg")
    _succeed(machine, image)

    machine.toggle_selection(image.id, False)

    assert machine.use_enhanced(image.id) is False
    assert image.display_ref(machine.use_enhanced(image.id)) == "file://a.jpg"


def test_begin_analysis_fails_while_enhancement_pending():
    machine = SessionMachine()
    done = machine.add_image(b"one", "file://1.jpg")
    machine.add_image(b"two", "file://2.jpg")
    _succeed(machine, done)

    with pytest.raises(EnhancementPending):
        machine.begin_analysis(credential_configured=True)
    assert machine.stage is SessionStage.REVIEWING
    assert machine.state.last_error == EnhancementPending.default_message


def test_begin_analysis_succeeds_once_nothing_pending():
    machine = SessionMachine()
    ok = machine.add_image(b"one", "file://1.jpg")
    bad = machine.add_image(b"two", "file://2.jpg")
    _succeed(machine, ok)
    machine.enhancement_completed(bad.id, None)
    machine.state.last_error = "old error"

    machine.begin_analysis(credential_configured=True)

    assert machine.stage is SessionStage.ANALYZING
    assert machine.state.last_error is None
    assert machine.state.stream_buffer == ""


def test_begin_analysis_without_images():
    machine = SessionMachine()
    with pytest.raises(NoImages):
        machine.begin_analysis(credential_configured=True)


def test_begin_analysis_without_credential():
    machine = SessionMachine()
    machine.add_image(None, "file://a.jpg")
    with pytest.raises(MissingCredential):
        machine.begin_analysis(credential_configured=False)
    assert machine.stage is SessionStage.REVIEWING


def test_begin_analysis_rejected_while_analyzing():
    machine = SessionMachine()
    machine.add_image(None, "file://a.jpg")
    machine.begin_analysis(credential_configured=True)

    with pytest.raises(AnalysisInProgress):
        machine.begin_analysis(credential_configured=True)


def test_stream_chunks_only_while_analyzing():
    machine = SessionMachine()
    machine.add_image(None, "file://a.jpg")
    with pytest.raises(InvalidTransition):
        machine.append_stream_chunk("{")

    machine.begin_analysis(credential_configured=True)
    machine.append_stream_chunk('{"brand":')
    machine.append_stream_chunk('"Nike"}')

    assert machine.state.stream_buffer == '{"brand":"Nike"}'


def test_fail_analysis_returns_to_reviewing_and_discards_stream():
    machine = SessionMachine()
    machine.add_image(None, "file://a.jpg")
    machine.begin_analysis(credential_configured=True)
    machine.append_stream_chunk("partial")

    machine.fail_analysis("Invalid API key")

    assert machine.stage is SessionStage.REVIEWING
    assert machine.state.last_error == "Invalid API key"
    assert machine.state.stream_buffer == ""


def test_complete_analysis_stores_result_and_blocks_new_photos():
    machine = SessionMachine()
    machine.add_image(None, "file://a.jpg")
    machine.begin_analysis(credential_configured=True)
    draft = ListingDraft(id="d1", image_refs=["file://a.jpg"])

    machine.complete_analysis(draft)

    assert machine.stage is SessionStage.RESULTED
    assert machine.state.result is draft
    with pytest.raises(InvalidTransition):
        machine.add_image(b"raw", "file://b.jpg")


def test_reset_clears_everything():
    machine = SessionMachine()
    machine.add_image(b"raw", "file://a.jpg")
    machine.state.last_error = "boom"

    machine.reset()

    snapshot = machine.snapshot()
    assert snapshot["stage"] == "capture"
    assert snapshot["images"] == []
    assert snapshot["last_error"] is None
    assert snapshot["result"] is None


def test_ensure_can_add_checks_capacity_and_stage_without_mutating():
    machine = SessionMachine()
    for i in range(MAX_IMAGES - 1):
        machine.add_image(b"raw%d" % i, f"file://{i}.jpg")
    machine.ensure_can_add()

    machine.add_image(b"last", "file://last.jpg")
    with pytest.raises(CapacityExceeded):
        machine.ensure_can_add()
    assert len(machine.images) == MAX_IMAGES

    other = SessionMachine()
    other.add_image(None, "file://a.jpg")
    other.begin_analysis(credential_configured=True)
    with pytest.raises(InvalidTransition):
        other.ensure_can_add()


def test_draft_created_at_is_epoch_milliseconds():
    draft = ListingDraft(id="d1", image_refs=["file://a.jpg"])
    assert draft.created_at > 10**12
