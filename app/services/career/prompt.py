"""Prompt templates for the career generation flow."""
from typing import List
from app.services.career.models import QAndA


def format_history(history: List[QAndA]) -> str:
    """Render the questionnaire history as Q/A pairs."""
    return "\n\n".join(f"Q: {qa.question}\nA: {qa.answer}" for qa in history)


QUESTION_SYSTEM_PROMPT = """You are a career counselor AI. Your goal is to understand a user's interests, values, and skills.

You must output your response in JSON format with this structure:
{
    "question": "the question text",
    "options": ["option 1", "option 2", "option 3", "option 4"]
}"""


def get_question_prompt(history: List[QAndA]) -> str:
    """Prompt for the next multiple-choice question."""
    history_text = format_history(history) or "(no questions answered yet)"
    return f"""Generate a single, insightful multiple-choice question to help determine a suitable career path.
Provide 4 distinct and meaningful options.
Avoid generic questions. Make it thought-provoking.
The user has already answered the following questions:
{history_text}

Based on this, create the next question."""


ROADMAP_SYSTEM_PROMPT = """You are an expert career strategist.

You must output your response in JSON format with this structure:
{
    "roadmaps": [
        {
            "title": "career path title",
            "description": "short description",
            "nodes": [
                {"id": "1", "type": "input", "data": {"label": "first step"}, "position": {"x": 250, "y": 0}}
            ],
            "edges": [
                {"id": "e1-2", "source": "1", "target": "2"}
            ]
        }
    ]
}"""


def get_roadmap_prompt(history: List[QAndA], count: int = 3) -> str:
    """Prompt for flowchart-shaped career roadmaps."""
    return f"""Based on the following Q&A with a user, generate {count} distinct and detailed career roadmaps.
For each roadmap, provide a title, a short description, and a series of steps as nodes and connections as edges, formatted for a flowchart.
Nodes must have 'id', 'type' ('input' for the start, 'output' for the end, 'default' otherwise), 'data: {{ label: "..." }}', and 'position: {{ x: ..., y: ... }}'.
Edges must have 'id', 'source', and 'target'.
Arrange the node positions in a clear, top-to-bottom vertical flow. Start with y=0, and increment y by 100 for each subsequent level. Keep x values consistent for a clean vertical line, e.g., x=250.

Here's the user's Q&A:
{format_history(history)}"""


def get_mentor_intro_prompt(career_path: str) -> str:
    """Prompt for the spoken mentor greeting."""
    return f"""You are a helpful and experienced AI mentor specializing in the field of {career_path}.
Create a warm, encouraging, and brief introductory message (2-3 sentences) to start a simulated video call with a user who is new to this field.
Your response should be plain text, ready to be spoken."""
