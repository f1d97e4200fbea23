"""Prompt templates sent to the text-generation collaborator."""

from __future__ import annotations

from typing import Iterable, Tuple

__all__ = [
    "quiz_batch_prompt",
    "tutor_reply_prompt",
    "explain_seed_prompt",
    "wrong_answer_prompt",
    "review_seed_message",
]

_QUIZ_SCHEMA = """[
  {
    "id": "1",
    "question": "Question text",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correctOption": 0,
    "explanation": "Explanation of the correct answer",
    "difficulty": "easy",
    "topic": "Short topic name"
  }
]"""

_QUIZ_RULES = (
    "Each question must have exactly 4 options",
    "correctOption must be 0-3 (representing A-D)",
    "Each question must have a unique explanation",
    'Difficulty should be one of: "easy", "medium", "hard"',
    "Include 2 easy, 2 medium, and 1 hard question",
    "Ensure options are unique and not repeated",
    "Vary the position of correct answers (don't make them all A or B)",
    "Make questions clear and unambiguous",
    "Include the explanation for each answer",
)


def quiz_batch_prompt(subject: str) -> str:
    rules = "\n".join(
        f"{number}. {rule}" for number, rule in enumerate(_QUIZ_RULES, 1)
    )
    return (
        f"Generate 5 multiple choice questions about {subject}.\n"
        "Format the response as a JSON array with the following structure:\n"
        f"{_QUIZ_SCHEMA}\n\n"
        f"Rules:\n{rules}\n\n"
        "Respond with the JSON array only."
    )


def tutor_reply_prompt(
    history: Iterable[Tuple[str, str]], message: str, *, subject: str
) -> str:
    """Build the tutor prompt from ``(role, content)`` history pairs."""

    transcript = "\n".join(
        f"{'User' if role == 'user' else 'Assistant'}: {content}"
        for role, content in history
    )
    return (
        "You are a helpful AI tutor. "
        f"The user is learning about {subject}.\n"
        "Provide clear, detailed explanations and help them understand the "
        "concepts better.\n"
        "Only ask questions to verify understanding if the conversation was "
        'started from the "Explain in Chat" button.\n'
        "For regular chat messages, respond naturally without asking "
        "questions.\n\n"
        f"Previous conversation:\n{transcript}\n\n"
        f"Current message: {message}"
    )


def explain_seed_prompt(first_message: str) -> str:
    return (
        "You are a helpful AI tutor. The user is reviewing questions they got "
        "wrong in a quiz.\n"
        'This conversation was started from the "Explain in Chat" button.\n'
        "Provide a detailed explanation of the concept and then ask 2-3 "
        "questions to verify their understanding.\n\n"
        f"User's question: {first_message}"
    )


def wrong_answer_prompt(
    question: str, user_answer: str, correct_answer: str
) -> str:
    return (
        f'Please explain why the answer "{user_answer}" is incorrect and why '
        f'"{correct_answer}" is correct for the following question: '
        f'"{question}". Provide a clear and concise explanation.'
    )


def review_seed_message(
    question: str,
    user_answer: str,
    correct_answer: str,
    *,
    understanding_check: bool = False,
) -> str:
    """Return the first user message of a review conversation."""

    if understanding_check:
        return (
            "Please check if I understand this question correctly: "
            f'"{question}"\n'
            f'My answer was: "{user_answer}"\n'
            f'The correct answer is: "{correct_answer}"\n\n'
            "Please ask me questions to verify my understanding."
        )
    return (
        f'Please explain this question in detail: "{question}"\n'
        f'My answer was: "{user_answer}"\n'
        f'The correct answer is: "{correct_answer}"'
    )
