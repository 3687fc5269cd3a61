from __future__ import annotations

import dataclasses
from concurrent.futures import ThreadPoolExecutor

import cv2
import numpy as np
import pytest

from seqlandmarks.errors import InvalidInputError, ModelLoadError, ProviderError, StateError
from seqlandmarks.sequence import SequenceFaceLandmarks
from seqlandmarks.tracking.identity import TrackingPolicy

FACE_A = (10, 10, 50, 50)
FACE_B = (12, 11, 50, 51)


class _FlakyProvider:
    """Delegates to another provider until ``fail`` is set."""

    def __init__(self, inner):
        self.inner = inner
        self.fail = False

    def detect(self, image):
        if self.fail:
            raise RuntimeError("detector crashed")
        return self.inner.detect(image)

    def locate(self, image, bbox):
        return self.inner.locate(image, bbox)


class _ShrinkingLandmarks:
    """Returns one fewer landmark on every call."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = 0

    def detect(self, image):
        return self.inner.detect(image)

    def locate(self, image, bbox):
        self.calls += 1
        points = self.inner.locate(image, bbox)
        return points[: max(1, len(points) - self.calls + 1)]


def test_tracked_scenario_keeps_identity(provider, paint):
    store = SequenceFaceLandmarks.from_provider(provider, track_faces=True)

    frame_a = store.add_frame(paint([FACE_A]))
    frame_b = store.add_frame(paint([FACE_B]))

    assert (frame_a.id, frame_a.face_ids) == (0, (0,))
    assert frame_a.faces[0].bbox == FACE_A
    assert frame_a.faces[0].landmarks == ((10, 10), (60, 10), (35, 35), (10, 60), (60, 60))
    assert (frame_b.id, frame_b.face_ids) == (1, (0,))
    assert (frame_b.width, frame_b.height) == (320, 240)


def test_untracked_fresh_sequence_starts_at_zero(provider, paint):
    tracked = SequenceFaceLandmarks.from_provider(provider, track_faces=True)
    for offset in range(3):
        tracked.add_frame(paint([(10 + 80 * offset, 10, 30, 30), (10, 150, 30, 30)]))

    fresh = SequenceFaceLandmarks.from_provider(provider, track_faces=False)
    frame = fresh.add_frame(paint([FACE_B]))

    assert frame.face_ids == (0,)


def test_untracked_ids_do_not_depend_on_frame_order(provider, paint):
    frame_x = paint([(10, 10, 40, 40), (100, 10, 40, 40)])
    frame_y = paint([(10, 120, 40, 40), (100, 120, 40, 40), (200, 120, 40, 40)])

    forward = SequenceFaceLandmarks.from_provider(provider)
    backward = SequenceFaceLandmarks.from_provider(provider)
    forward_ids = [forward.add_frame(img).face_ids for img in (frame_x, frame_y)]
    backward_ids = [backward.add_frame(img).face_ids for img in (frame_y, frame_x)]

    assert forward_ids == [(0, 1), (0, 1, 2)]
    assert backward_ids == [(0, 1, 2), (0, 1)]


def test_unmatched_faces_receive_new_ids(provider, paint):
    store = SequenceFaceLandmarks.from_provider(provider, track_faces=True)
    store.add_frame(paint([(10, 10, 40, 40)]))
    moved = store.add_frame(paint([(200, 150, 40, 40), (12, 10, 40, 40)]))
    gone = store.add_frame(paint([(200, 150, 40, 40)]))

    assert moved.face_ids == (0, 1)
    assert moved.get_face(0).bbox == (12, 10, 40, 40)
    assert moved.get_face(1).bbox == (200, 150, 40, 40)
    assert gone.face_ids == (1,)


def test_frame_ids_auto_and_explicit(provider, paint):
    store = SequenceFaceLandmarks.from_provider(provider)

    assert store.add_frame(paint([]), frame_id=42).id == 42
    assert store.add_frame(paint([])).id == 1
    assert store.add_frame(paint([]), frame_id=-1).id == 2
    assert [f.id for f in store.get_sequence()] == [42, 1, 2]


@pytest.mark.parametrize("frame_id", [3.7, "3", True])
def test_non_integer_frame_id_is_rejected(provider, paint, frame_id):
    store = SequenceFaceLandmarks.from_provider(provider)

    with pytest.raises(InvalidInputError):
        store.add_frame(paint([FACE_A]), frame_id=frame_id)
    assert store.size() == 0
    assert provider.detect_calls == 0


def test_numpy_integer_frame_id_is_accepted(provider, paint):
    store = SequenceFaceLandmarks.from_provider(provider)

    assert store.add_frame(paint([]), frame_id=np.int64(7)).id == 7


def test_empty_frame_is_still_appended(provider, paint):
    store = SequenceFaceLandmarks.from_provider(provider, track_faces=True)

    frame = store.add_frame(paint([]))

    assert frame.faces == ()
    assert store.size() == 1


def test_grayscale_frames_are_accepted(provider, paint):
    store = SequenceFaceLandmarks.from_provider(provider)
    gray = cv2.cvtColor(paint([FACE_A]), cv2.COLOR_BGR2GRAY)

    frame = store.add_frame(gray)

    assert frame.faces[0].bbox == FACE_A


@pytest.mark.parametrize(
    "image",
    [
        np.zeros((0, 10, 3), dtype=np.uint8),
        np.zeros((10, 0), dtype=np.uint8),
        np.zeros((4, 4, 4, 4), dtype=np.uint8),
        np.zeros((10, 10, 2), dtype=np.uint8),
        [[0, 0], [0, 0]],
        None,
    ],
)
def test_invalid_images_are_rejected(provider, image):
    store = SequenceFaceLandmarks.from_provider(provider)

    with pytest.raises(InvalidInputError):
        store.add_frame(image)
    assert store.size() == 0
    assert provider.detect_calls == 0


def test_add_frame_without_model_raises_state_error(paint):
    store = SequenceFaceLandmarks.create(frame_scale=0.5, track_faces=True)

    assert store.get_model() == ""
    with pytest.raises(StateError):
        store.add_frame(paint([FACE_A]))


def test_scale_keeps_original_coordinates(provider, paint):
    boxes = [FACE_A, (101, 61, 67, 83)]
    image = paint(boxes)

    full = SequenceFaceLandmarks.from_provider(provider, frame_scale=1.0).add_frame(image)
    half = SequenceFaceLandmarks.from_provider(provider, frame_scale=0.5).add_frame(image)

    assert provider.last_shape == (120, 160, 3)
    assert (half.width, half.height) == (320, 240)
    assert len(full.faces) == len(half.faces) == 2
    for face_full, face_half in zip(full.faces, half.faces):
        assert np.allclose(face_full.bbox, face_half.bbox, atol=2)
        assert np.allclose(face_full.landmarks, face_half.landmarks, atol=2)


def test_clear_resets_frame_and_face_counters(provider, paint):
    store = SequenceFaceLandmarks.from_provider(provider, track_faces=True)
    for step in range(3):
        store.add_frame(paint([(10 + 100 * step, 10, 40, 40), (10 + 100 * step, 150, 40, 40)]))
    assert store.get_sequence()[-1].face_ids == (4, 5)

    store.clear()

    assert store.size() == 0
    frame = store.add_frame(paint([(10, 10, 40, 40), (100, 150, 40, 40)]))
    assert frame.id == 0
    assert frame.face_ids == (0, 1)


def test_sequence_view_is_a_stable_snapshot(provider, paint):
    store = SequenceFaceLandmarks.from_provider(provider)
    store.add_frame(paint([FACE_A]))
    view = store.get_sequence()

    store.add_frame(paint([FACE_B]))

    assert len(view) == 1
    assert len(store) == 2
    assert [f.id for f in store] == [0, 1]
    with pytest.raises(dataclasses.FrozenInstanceError):
        view[0].id = 7


def test_failed_detection_leaves_state_untouched(provider, paint):
    flaky = _FlakyProvider(provider)
    store = SequenceFaceLandmarks.from_provider(flaky, track_faces=True)
    store.add_frame(paint([FACE_A]))

    flaky.fail = True
    with pytest.raises(RuntimeError):
        store.add_frame(paint([(200, 150, 40, 40)]))
    flaky.fail = False

    assert store.size() == 1
    frame = store.add_frame(paint([FACE_B, (200, 150, 40, 40)]))
    assert frame.id == 1
    assert frame.face_ids == (0, 1)


def test_landmark_count_change_raises_provider_error(provider, paint):
    store = SequenceFaceLandmarks.from_provider(_ShrinkingLandmarks(provider))
    store.add_frame(paint([FACE_A]))

    with pytest.raises(ProviderError):
        store.add_frame(paint([FACE_B]))
    assert store.size() == 1


def test_toggling_tracking_restarts_identity_state(provider, paint):
    store = SequenceFaceLandmarks.from_provider(provider, track_faces=True)
    store.add_frame(paint([(10, 10, 40, 40)]))
    store.add_frame(paint([(200, 10, 40, 40)]))

    store.set_track_faces(False)
    assert store.get_track_faces() is False
    store.track_faces = True

    frame = store.add_frame(paint([(200, 10, 40, 40)]))
    assert frame.face_ids == (0,)
    assert frame.id == 2


@pytest.mark.parametrize("scale", [0, -1.0, float("nan"), float("inf"), "big"])
def test_invalid_frame_scale(provider, scale):
    store = SequenceFaceLandmarks.from_provider(provider, frame_scale=0.75)

    with pytest.raises(InvalidInputError):
        store.set_frame_scale(scale)
    assert store.get_frame_scale() == 0.75
    with pytest.raises(InvalidInputError):
        SequenceFaceLandmarks.create(frame_scale=scale)


def test_create_with_missing_model_path(tmp_path):
    with pytest.raises(ModelLoadError) as excinfo:
        SequenceFaceLandmarks.create(str(tmp_path / "missing.onnx"))
    assert excinfo.value.model_path.endswith("missing.onnx")


def test_create_loads_model_through_loader(model_file, rectangle_loader, paint):
    store = SequenceFaceLandmarks.create(
        str(model_file),
        frame_scale=0.5,
        track_faces=True,
        loader=rectangle_loader,
        policy=TrackingPolicy(iou_threshold=0.5),
    )

    assert store.get_model() == str(model_file)
    assert store.model_path == str(model_file)
    assert store.get_frame_scale() == 0.5
    assert store.get_track_faces() is True
    assert store.policy.iou_threshold == 0.5
    assert rectangle_loader.loaded == [str(model_file)]
    assert store.add_frame(paint([FACE_A])).faces[0].bbox == FACE_A


def test_set_model_failure_keeps_previous_model(model_file, rectangle_loader, tmp_path):
    store = SequenceFaceLandmarks.create(str(model_file), loader=rectangle_loader)
    handle = store.model

    with pytest.raises(ModelLoadError):
        store.set_model(str(tmp_path / "nope.onnx"))

    assert store.model is handle
    assert store.get_model() == str(model_file)


def test_clone_shares_model_but_not_history(model_file, rectangle_loader, paint):
    original = SequenceFaceLandmarks.create(str(model_file), 0.5, True, loader=rectangle_loader)
    for step in range(2):
        original.add_frame(paint([(10 + 150 * step, 10, 40, 40)]))

    clone = original.clone()

    assert clone.model is original.model
    assert rectangle_loader.loaded == [str(model_file)]
    assert clone.size() == 0
    assert (clone.get_frame_scale(), clone.get_track_faces()) == (0.5, True)
    assert clone.policy == original.policy

    clone_frame = clone.add_frame(paint([(200, 150, 40, 40)]))
    assert (clone_frame.id, clone_frame.face_ids) == (0, (0,))
    assert original.size() == 2

    original.add_frame(paint([(160, 10, 40, 40)]))
    assert clone.size() == 1
    assert original.get_sequence()[-1].face_ids == (1,)


def test_clones_process_sequences_concurrently(provider, paint):
    template = SequenceFaceLandmarks.from_provider(provider, track_faces=True)
    videos = [
        [paint([(10 + 5 * i, 10, 40, 40)]) for i in range(5)],
        [paint([(10, 10, 40, 40), (200 - 5 * i, 150, 40, 40)]) for i in range(5)],
    ]

    def _run(frames):
        store = template.clone()
        for image in frames:
            store.add_frame(image)
        return store.get_sequence()

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(_run, videos))

    assert [f.face_ids for f in results[0]] == [(0,)] * 5
    assert [f.face_ids for f in results[1]] == [(0, 1)] * 5
    assert template.size() == 0
