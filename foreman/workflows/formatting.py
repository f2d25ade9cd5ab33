"""
Workflow Message Formatting - Text shown and spoken for workflow responses
"""

from typing import Optional, Union

from ..api.schemas import FeedbackHistoryResponse, FeedbackResponse, StepInfo, WorkOrderStartResponse

COMPLETED_TEXT = "Work order completed successfully! 🎉"
COMPLETED_SPEECH = "Work order completed successfully!"
NEXT_STEP_TEXT = "Proceeding to next step."


def _estimated_time(step: Optional[StepInfo]) -> str:
    if step is not None and step.estimated_time:
        return f"\n\nEstimated time: {_number(step.estimated_time)} hours"
    return ""


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _progress(response: FeedbackResponse) -> str:
    if response.progress is not None:
        p = response.progress
        return f"\n\nProgress: {p.completed}/{p.total} steps ({p.percentage:.1f}%)"
    if response.completed_steps and response.total_steps:
        percentage = response.completed_steps / response.total_steps * 100
        return f"\n\nProgress: {response.completed_steps}/{response.total_steps} steps ({percentage:.1f}%)"
    return ""


def format_start(work_order_id: str, response: WorkOrderStartResponse) -> str:
    text = f"Starting work order {work_order_id}."
    if response.tts_text:
        text += f"\n\n{response.tts_text}"
    return text + _estimated_time(response.current_step)


def format_resume(work_order_id: str, response: WorkOrderStartResponse) -> str:
    text = response.message or f"Resuming work order {work_order_id}."
    if response.current_step is not None and response.current_step.description:
        text += f"\n\n{response.current_step.description}"
    return text + _estimated_time(response.current_step)


def format_restart(work_order_id: str, response: WorkOrderStartResponse) -> str:
    text = f"Restarting work order {work_order_id} from the beginning."
    if response.tts_text:
        text += f"\n\n{response.tts_text}"
    return text + _estimated_time(response.current_step)


def format_next_step(response: FeedbackResponse, step_addressed: bool = False) -> str:
    """
    Message for a next_step response.

    Step-id addressed (resumed) sessions describe the step from next_step;
    the others use tts_text and current_step.
    """
    text = response.message or NEXT_STEP_TEXT
    if step_addressed and response.next_step is not None and response.next_step.description:
        text += f"\n\n{response.next_step.description}"
        text += _estimated_time(response.next_step)
    else:
        if response.tts_text:
            text += f"\n\n{response.tts_text}"
        text += _estimated_time(response.current_step)
    return text + _progress(response)


def speech_for_next_step(response: FeedbackResponse, message_text: str, step_addressed: bool = False) -> str:
    if step_addressed and response.next_step is not None and response.next_step.description:
        return f"{response.message.rstrip('.')}. {response.next_step.description}"
    return message_text


def _hours(total_time: Union[float, str]) -> str:
    try:
        return f"{float(total_time):.2f}"
    except ValueError:
        return str(total_time)


def format_completion(response: FeedbackResponse) -> str:
    text = response.message or COMPLETED_TEXT
    summary = response.summary
    if summary is not None:
        text += "\n\n📊 Work Order Summary:"
        if summary.summary_text:
            text += f"\n{summary.summary_text}"
        if summary.major_issues_resolved:
            text += f"\n\n🔧 Major Issues Resolved:\n{summary.major_issues_resolved}"
        if summary.recommendations_for_customer:
            text += f"\n\n💡 Recommendations:\n{summary.recommendations_for_customer}"
    else:
        if response.total_steps:
            text += f"\n\n✅ Total Steps Completed: {response.total_steps}"
        if response.total_time:
            text += f"\n⏱️ Total Time: {_hours(response.total_time)} hours"
    return text


def speech_for_completion(response: FeedbackResponse) -> str:
    speech = response.message or COMPLETED_SPEECH
    summary = response.summary
    if summary is not None and summary.summary_text:
        speech += f" {summary.summary_text}"
        if summary.major_issues_resolved:
            speech += f" Major issues resolved: {summary.major_issues_resolved}"
        if summary.recommendations_for_customer:
            speech += f" Recommendations for customer: {summary.recommendations_for_customer}"
    elif response.tts_text:
        speech = response.tts_text
    return speech


def format_feedback_history(work_order_id: Optional[str], history: FeedbackHistoryResponse) -> str:
    name = work_order_id or "this work order"
    if not history.feedbacks:
        return f"No feedback recorded for {name} yet."
    lines = [f"Feedback recorded for {name}:"]
    for item in history.feedbacks:
        step = f"Step {item.step_number}" if item.step_number is not None else "Step ?"
        line = f"- {step}: {item.feedback or 'no rating'}"
        if item.notes:
            line += f" ({item.notes})"
        lines.append(line)
    return "\n".join(lines)
