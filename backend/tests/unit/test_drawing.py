import asyncio

from mapexplorer.drawing import AnnotationEngine, DEFAULT_COLOR, DEFAULT_FILL_COLOR, DEFAULT_WEIGHT
from mapexplorer.models import DrawingMode


class RecordingStore:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    async def save(self, feature):
        self.calls.append(("save", feature.id))

    async def delete(self, feature_id):
        self.calls.append(("delete", feature_id))
        if self.fail:
            raise ConnectionError("store offline")

    async def clear(self):
        self.calls.append(("clear", None))


POLYGON = [(13.14, 123.73), (13.15, 123.75), (13.13, 123.76)]


def _draw(engine, mode, points):
    engine.select_mode(mode)
    for lat, lng in points:
        engine.add_vertex(lat, lng)
    return engine.finalize()


def test_polygon_needs_three_vertices():
    engine = AnnotationEngine()
    engine.select_mode(DrawingMode.POLYGON)
    engine.add_vertex(*POLYGON[0])
    engine.add_vertex(*POLYGON[1])

    assert engine.finalize() is None
    assert engine.features == []
    assert len(engine.buffer) == 2
    assert engine.mode == DrawingMode.POLYGON

    engine.add_vertex(*POLYGON[2])
    feature = engine.finalize()

    assert feature is not None
    assert engine.features == [feature]
    assert [(c.lat, c.lng) for c in feature.coordinates] == POLYGON
    assert engine.buffer == []
    assert engine.mode is None


def test_feature_carries_current_style_and_details():
    engine = AnnotationEngine()
    feature = _draw(engine, DrawingMode.LINE, POLYGON[:2])
    assert feature.color == DEFAULT_COLOR
    assert feature.fillColor == DEFAULT_FILL_COLOR
    assert feature.weight == DEFAULT_WEIGHT

    engine.set_style(color="#00FF00", fill_color="#00FF0040", weight=5)
    engine.set_details(title="Evacuation route", description="Via national road")
    feature = _draw(engine, DrawingMode.LINE, POLYGON[:2])

    assert feature.color == "#00FF00"
    assert feature.fillColor == "#00FF0040"
    assert feature.weight == 5
    assert feature.title == "Evacuation route"
    assert feature.description == "Via national road"


def test_feature_ids_are_unique():
    engine = AnnotationEngine()
    ids = {_draw(engine, DrawingMode.LINE, POLYGON[:2]).id for _ in range(5)}
    assert len(ids) == 5


def test_point_finalizes_on_click():
    engine = AnnotationEngine()
    engine.select_mode(DrawingMode.POINT)
    feature = engine.add_vertex(13.14, 123.73)

    assert feature is not None
    assert feature.kind == DrawingMode.POINT
    assert engine.mode is None


def test_rectangle_finalizes_on_second_corner():
    engine = AnnotationEngine()
    engine.select_mode(DrawingMode.RECTANGLE)
    assert engine.add_vertex(13.1, 123.7) is None
    feature = engine.add_vertex(13.2, 123.8)
    assert feature.kind == DrawingMode.RECTANGLE
    assert len(feature.coordinates) == 2


def test_clicks_ignored_when_idle():
    engine = AnnotationEngine()
    assert engine.add_vertex(13.1, 123.7) is None
    assert engine.buffer == []
    assert engine.finalize() is None


def test_selecting_mode_clears_buffer():
    engine = AnnotationEngine()
    engine.select_mode(DrawingMode.LINE)
    engine.add_vertex(13.1, 123.7)
    engine.select_mode(DrawingMode.POLYGON)
    assert engine.buffer == []
    engine.select_mode(None)
    assert engine.mode is None


def test_undo_vertex():
    engine = AnnotationEngine()
    engine.select_mode(DrawingMode.LINE)
    engine.add_vertex(13.1, 123.7)
    engine.add_vertex(13.2, 123.8)
    removed = engine.undo_vertex()
    assert (removed.lat, removed.lng) == (13.2, 123.8)
    assert len(engine.buffer) == 1


def test_delete_and_clear_notify_store():
    store = RecordingStore()
    engine = AnnotationEngine(store)

    async def scenario():
        a = _draw(engine, DrawingMode.POLYGON, POLYGON)
        b = _draw(engine, DrawingMode.LINE, POLYGON[:2])
        engine.select_mode(DrawingMode.POINT)
        c = engine.add_vertex(*POLYGON[0])

        assert engine.delete_feature(b.id) is True
        assert engine.features == [a, c]

        engine.clear_all_features()
        assert engine.features == []
        await engine.drain()
        return a, b, c

    a, b, c = asyncio.run(scenario())
    assert ("save", a.id) in store.calls
    assert ("delete", b.id) in store.calls
    assert store.calls[-1] == ("clear", None)


def test_store_failure_does_not_roll_back():
    store = RecordingStore(fail=True)
    engine = AnnotationEngine(store)

    async def scenario():
        feature = _draw(engine, DrawingMode.LINE, POLYGON[:2])
        engine.delete_feature(feature.id)
        await engine.drain()

    asyncio.run(scenario())
    assert engine.features == []
    assert store.calls[-1][0] == "delete"


def test_changes_apply_without_event_loop():
    engine = AnnotationEngine(RecordingStore())
    feature = _draw(engine, DrawingMode.LINE, POLYGON[:2])
    engine.delete_feature(feature.id)
    assert engine.features == []
