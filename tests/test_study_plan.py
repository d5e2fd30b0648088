"""Tests for study plan strategies, generation and memento history."""
from datetime import datetime, timedelta

import pytest

from study_tools.errors import UnknownStrategy
from study_tools.models import StudyStrategyType, StudyTopic
from study_tools.study_plan import (
    IntensiveStrategy, LightStrategy, RegularStrategy, StudyPlanCaretaker, StudyPlanGenerator,
    StudyPlanOriginator,
)


def make_topics():
    return [
        StudyTopic(id="1", title="High Priority Topic", estimated_hours=10, priority="HIGH"),
        StudyTopic(id="2", title="Medium Priority Topic", estimated_hours=8, priority="MEDIUM"),
        StudyTopic(id="3", title="Low Priority Topic", estimated_hours=6, priority="LOW"),
    ]


@pytest.mark.parametrize("strategy,daily,max_session,breaks", [
    (IntensiveStrategy(), 8, 3, 50),
    (RegularStrategy(), 4, 2, 45),
    (LightStrategy(), 2, 1, 30),
])
def test_strategy_parameters(strategy, daily, max_session, breaks):
    assert strategy.daily_hours == daily
    assert strategy.max_session_hours == max_session
    assert strategy.break_frequency == breaks


def test_high_priority_first():
    topics = list(reversed(make_topics()))
    sessions = IntensiveStrategy().distribute_topics(topics)
    assert sessions[0].topic_id == "1"
    assert sessions[-1].topic_id == "3"


def test_same_priority_shorter_first():
    topics = [
        StudyTopic(id="long", title="Long", estimated_hours=5),
        StudyTopic(id="short", title="Short", estimated_hours=1),
    ]
    sessions = RegularStrategy().distribute_topics(topics)
    assert sessions[0].topic_id == "short"


def test_sessions_respect_caps():
    sessions = IntensiveStrategy().distribute_topics(make_topics())
    assert all(s.duration <= 3 for s in sessions)
    per_day = {}
    for s in sessions:
        per_day[s.scheduled_date.date()] = per_day.get(s.scheduled_date.date(), 0) + s.duration
    assert all(hours <= 8 for hours in per_day.values())


def test_sessions_cover_all_hours():
    sessions = RegularStrategy().distribute_topics(make_topics())
    assert sum(s.duration for s in sessions) == 24


def test_distribution_spans_days():
    start = datetime(2024, 3, 1, 8, 0)
    sessions = RegularStrategy().distribute_topics(make_topics(), start=start)
    days = sorted({s.scheduled_date for s in sessions})
    assert days[0] == start
    assert days[-1] == start + timedelta(days=5)
    assert len(days) == 6


def test_day_filled_before_moving_on():
    start = datetime(2024, 3, 1)
    sessions = LightStrategy().distribute_topics(
        [StudyTopic(id="a", title="A", estimated_hours=1.5)], start=start,
    )
    assert [(s.duration, s.scheduled_date) for s in sessions] == [(1, start), (0.5, start)]


def test_generate_plan():
    plan = StudyPlanGenerator().generate_plan(make_topics(), StudyStrategyType.INTENSIVE)
    assert plan.strategy == StudyStrategyType.INTENSIVE
    assert plan.user_id == "guest-user"
    assert plan.id.startswith("plan-")
    assert len(plan.topics) == 3
    assert len(plan.sessions) > 0
    assert plan.target_date is None


def test_generate_plan_with_target_date():
    target = datetime.now() + timedelta(days=30)
    plan = StudyPlanGenerator().generate_plan(make_topics(), StudyStrategyType.REGULAR, "test-user", target)
    assert plan.target_date == target
    assert plan.user_id == "test-user"


def test_generate_plan_copies_topics():
    topics = make_topics()
    plan = StudyPlanGenerator().generate_plan(topics, StudyStrategyType.LIGHT)
    plan.topics[0].completed = True
    assert not topics[0].completed


def test_unknown_strategy():
    generator = StudyPlanGenerator(strategies=[RegularStrategy()])
    with pytest.raises(UnknownStrategy):
        generator.generate_plan(make_topics(), StudyStrategyType.INTENSIVE)


def test_calculate_days():
    generator = StudyPlanGenerator()
    assert generator.calculate_days(make_topics(), StudyStrategyType.REGULAR) == 6
    assert generator.calculate_days(make_topics(), StudyStrategyType.INTENSIVE) == 3
    target = datetime.now() + timedelta(days=9, hours=12)
    assert generator.calculate_days(make_topics(), StudyStrategyType.LIGHT, target) == 10
    past = datetime.now() - timedelta(days=3)
    assert generator.calculate_days(make_topics(), StudyStrategyType.LIGHT, past) == 1


@pytest.fixture
def plan():
    return StudyPlanGenerator().generate_plan(make_topics(), StudyStrategyType.REGULAR)


def test_complete_session(plan):
    originator = StudyPlanOriginator(plan)
    session = plan.sessions[0]
    assert originator.complete_session(session.id)
    assert session.completed
    assert session.completed_date is not None
    assert not originator.complete_session(session.id)
    assert not originator.complete_session("missing")


def test_topic_completed_when_all_sessions_done(plan):
    originator = StudyPlanOriginator(plan)
    topic_sessions = [s for s in plan.sessions if s.topic_id == "1"]
    for s in topic_sessions[:-1]:
        originator.complete_session(s.id)
    assert not plan.topics[0].completed
    originator.complete_session(topic_sessions[-1].id)
    assert plan.topics[0].completed


def test_progress(plan):
    originator = StudyPlanOriginator(plan)
    progress = originator.get_progress()
    assert progress["percentage_complete"] == 0
    assert progress["total_hours"] == 24
    originator.complete_session(plan.sessions[0].id)
    progress = originator.get_progress()
    assert progress["completed_sessions"] == 1
    assert progress["hours_studied"] == 2
    assert progress["percentage_complete"] == 8
    assert progress["total_topics"] == 3


def test_progress_empty_plan(plan):
    plan.sessions = []
    assert StudyPlanOriginator(plan).get_progress()["percentage_complete"] == 0


def test_add_and_remove_topic(plan):
    originator = StudyPlanOriginator(plan)
    originator.add_topic(StudyTopic(id="4", title="Extra", estimated_hours=1))
    assert len(plan.topics) == 4
    originator.remove_topic("1")
    assert [t.id for t in plan.topics] == ["2", "3", "4"]
    assert all(s.topic_id != "1" for s in plan.sessions)


def test_caretaker_restore(plan):
    originator = StudyPlanOriginator(plan)
    caretaker = StudyPlanCaretaker()
    caretaker.save(plan)
    originator.complete_session(plan.sessions[0].id)
    caretaker.save(plan)
    assert caretaker.get_latest().completed_sessions == 1
    assert caretaker.get_latest().total_hours_studied == 2

    originator.restore_from_memento(caretaker.restore(0))
    assert not plan.sessions[0].completed
    assert caretaker.restore(5) is None
    assert caretaker.restore(-1) is None


def test_caretaker_snapshots_are_isolated(plan):
    caretaker = StudyPlanCaretaker()
    caretaker.save(plan)
    plan.sessions[0].completed = True
    assert not caretaker.get_latest().sessions[0].completed


def test_restored_state_is_not_aliased(plan):
    originator = StudyPlanOriginator(plan)
    caretaker = StudyPlanCaretaker()
    caretaker.save(plan)
    originator.restore_from_memento(caretaker.get_latest())
    originator.complete_session(plan.sessions[0].id)
    assert not caretaker.get_latest().sessions[0].completed


def test_caretaker_history_limit(plan):
    caretaker = StudyPlanCaretaker(max_history=3)
    for i in range(5):
        plan.topics[0].title = f"v{i}"
        caretaker.save(plan)
    assert len(caretaker.history) == 3
    assert caretaker.restore(0).topics[0].title == "v2"
    assert caretaker.pop().topics[0].title == "v4"
    assert len(caretaker.history) == 2
    caretaker.clear()
    assert caretaker.get_latest() is None
    assert caretaker.pop() is None
