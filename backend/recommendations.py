"""
Recommendation generation.

Recommendations are derived state: every run replaces the owner's whole set.
The rule-based generator emits one record per matching task (urgent, then
overdue, then due today); with no match it emits a single motivational
record. The model-backed generator emits one record whose text is the
model's reply.
"""
import logging
from datetime import date
from typing import Optional

import database
from classifier import classify_tasks, is_completed, is_urgent
from llm import LLMGateway
from models import DueDateType, RecommendationDraft, RecommendationType, Recommendation, Task, TaskSummary
from prompts import RECOMMENDATION_PROMPT, EMPTY_TASKS_MESSAGE, EMPTY_TASKS_REASONING

logger = logging.getLogger(__name__)


def _empty_recommendation() -> RecommendationDraft:
    return RecommendationDraft(
        content=EMPTY_TASKS_MESSAGE,
        type=RecommendationType.MOTIVATION,
        reasoning=EMPTY_TASKS_REASONING,
    )


def build_recommendations(
    open_tasks: list[Task],
    completed_count: int = 0,
    today: Optional[date] = None
) -> list[RecommendationDraft]:
    """Rule-based recommendations for an owner's open (non-archived, non-completed) tasks."""
    if not open_tasks:
        return [_empty_recommendation()]

    classification = classify_tasks(open_tasks, today)
    drafts: list[RecommendationDraft] = []

    for task in classification.urgent:
        drafts.append(RecommendationDraft(
            content=f"טפל/י קודם במשימה הדחופה: {task.title}",
            type=RecommendationType.URGENT,
            reasoning="המשימה מסומנת כדחופה" if task.due_date_type == DueDateType.URGENT else "המשימה מסומנת לביצוע בהקדם האפשרי",
        ))
    for task in classification.overdue:
        drafts.append(RecommendationDraft(
            content=f"המשימה \"{task.title}\" עברה את תאריך היעד",
            type=RecommendationType.OVERDUE,
            reasoning="תאריך היעד של המשימה עבר",
        ))
    for task in classification.due_today:
        drafts.append(RecommendationDraft(
            content=f"המשימה \"{task.title}\" מתוכננת להיום",
            type=RecommendationType.TASK_ANALYSIS,
            reasoning="תאריך היעד של המשימה הוא היום",
        ))

    if not classification.has_open_matches:
        titles = ", ".join(task.title for task in open_tasks)
        return [RecommendationDraft(
            content=f"יש לך {len(open_tasks)} משימות פתוחות: {titles}. בחר/י אחת והתחל/י לעבוד עליה",
            type=RecommendationType.MOTIVATION,
            reasoning="אין משימות דחופות או באיחור",
        )]

    if completed_count > 0:
        drafts.append(RecommendationDraft(
            content=f"כל הכבוד! השלמת כבר {completed_count} משימות",
            type=RecommendationType.MOTIVATION,
            reasoning="עידוד על השלמת משימות",
        ))
    return drafts


async def generate_model_recommendation(
    gateway: LLMGateway,
    open_tasks: list[Task],
    today: Optional[date] = None
) -> list[RecommendationDraft]:
    """One recommendation phrased by the language model from the open task list."""
    if not open_tasks:
        return [_empty_recommendation()]

    today = today or date.today()
    summaries = [TaskSummary.from_task(task) for task in open_tasks]
    content = await gateway.complete(
        RECOMMENDATION_PROMPT.format(today=today.isoformat()),
        "Recommend what I should focus on next.",
        tasks=summaries,
    )
    rec_type = RecommendationType.URGENT if any(is_urgent(t) for t in open_tasks) else RecommendationType.MOTIVATION
    return [RecommendationDraft(content=content, type=rec_type, reasoning=None)]


async def regenerate_recommendations(
    owner: str,
    gateway: Optional[LLMGateway] = None,
    use_model: bool = False,
    today: Optional[date] = None
) -> list[Recommendation]:
    """
    Replace an owner's recommendations with a freshly generated set.

    The new set is fully built before anything is deleted; deletion completes
    before insertion starts. Store and model errors propagate to the caller.
    """
    tasks = await database.get_tasks_with_retry(owner)
    open_tasks = [task for task in tasks if not is_completed(task)]
    completed_count = len(tasks) - len(open_tasks)

    if use_model and gateway is not None:
        drafts = await generate_model_recommendation(gateway, open_tasks, today)
    else:
        drafts = build_recommendations(open_tasks, completed_count, today)

    removed = database.delete_recommendations(owner)
    records = database.insert_recommendations(owner, drafts)
    logger.info(
        "Regenerated recommendations for %s: removed %d, inserted %d (%d open tasks)",
        owner, removed, len(records), len(open_tasks)
    )
    return records
