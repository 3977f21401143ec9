"""
Interview Chat Service
Builds interviewer prompts for mock interview sessions and relays streamed
gateway replies to the browser as server-sent events
"""

import json
import logging
from typing import Callable, Dict, List, Optional

from app import db
from models import InterviewSession, InterviewMessage
from ai_service import AIGatewayError, iter_stream_deltas

INTERVIEW_TYPES = ('technical', 'behavioral', 'resume')

ADAPTIVE_OPENING_MESSAGE = "Start the adaptive interview simulation based on my skill gaps."
OPENING_TURN = "Please begin the interview."

DONE_FRAME = "data: [DONE]\n\n"

TECHNICAL_PROMPT = """You are an experienced technical interviewer at a product company, interviewing a B.Tech CSE student for a software engineering internship{role_hint}.

Guidelines:
- Ask one question at a time and wait for the candidate's answer
- Cover data structures, algorithms, OOP, databases, operating systems and system design basics
- Start easy and raise the difficulty based on how well the candidate answers
- When an answer is incomplete, ask a follow-up or give a small hint instead of the solution
- After each answer give brief, specific feedback before moving on
- Keep responses concise and conversational"""

BEHAVIORAL_PROMPT = """You are a friendly HR interviewer conducting a behavioral interview with a B.Tech CSE student applying for an internship{role_hint}.

Guidelines:
- Ask one question at a time about teamwork, leadership, conflict, failure and motivation
- Encourage the candidate to answer with the STAR method (Situation, Task, Action, Result)
- Probe for specifics when an answer is vague
- After each answer give short feedback on structure and impact
- Keep responses concise and conversational"""

RESUME_PROMPT = """You are an interviewer conducting a resume-based interview with a B.Tech CSE student{role_hint}.

The candidate's resume:
---
{resume}
---

Guidelines:
- Ask one question at a time about the projects, internships, skills and achievements listed above
- Dig into technical decisions, the candidate's own contribution and measurable outcomes
- Point out claims that need more evidence and ask the candidate to back them up
- After each answer give brief feedback on how convincingly it was explained
- Keep responses concise and conversational"""

ADAPTIVE_PROMPT = """You are an adaptive AI interviewer. The candidate has these identified skill gaps:

{gaps}

Your job:
- Run a realistic mock interview that concentrates on these skill gaps
- Ask one question at a time, starting with the most important gap
- Adjust the difficulty based on the quality of each answer: go deeper when the candidate does well, simplify and teach when they struggle
- After each answer give short, constructive feedback and point to a concrete way to improve
- Move on to the next gap once the current one has been covered
- Keep responses concise and encouraging"""

NO_RESUME_TEXT = "(No resume text is available. Ask the candidate to summarize their resume first.)"


def sse_frame(payload: Dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def delta_frame(content: str) -> str:
    """One streamed token in the chat-completions chunk shape the browser parses"""
    return sse_frame({'choices': [{'delta': {'content': content}}]})


class InterviewChatService:
    """Prompt construction for mock and adaptive interviews"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def system_prompt(self, interview_type: str, resume_content: Optional[str] = None,
                      job_title: Optional[str] = None) -> str:
        role_hint = f" ({job_title} role)" if job_title else ""

        if interview_type == 'technical':
            return TECHNICAL_PROMPT.format(role_hint=role_hint)
        if interview_type == 'behavioral':
            return BEHAVIORAL_PROMPT.format(role_hint=role_hint)
        if interview_type == 'resume':
            return RESUME_PROMPT.format(role_hint=role_hint, resume=(resume_content or NO_RESUME_TEXT).strip())

        raise ValueError(f"Unknown interview type: {interview_type}")

    def build_session_messages(self, session: InterviewSession) -> List[Dict[str, str]]:
        """
        Full gateway message list for a stored session: the system prompt
        followed by every stored turn. An empty session gets an opening turn
        so the interviewer asks the first question.
        """
        job_title = session.job_profile.title if session.job_profile else None
        messages = [{
            'role': 'system',
            'content': self.system_prompt(session.interview_type, session.resume_content, job_title)
        }]

        history = [{'role': m.role, 'content': m.content} for m in session.messages]
        if not history:
            history.append({'role': 'user', 'content': OPENING_TURN})

        return messages + history

    def format_skill_gaps(self, skill_gaps) -> str:
        lines = []
        for gap in skill_gaps or []:
            if isinstance(gap, dict):
                skill = gap.get('skill') or 'Unnamed skill'
                importance = gap.get('importance')
                lines.append(f"- {skill}: {importance}" if importance else f"- {skill}")
            elif gap:
                lines.append(f"- {gap}")
        return '\n'.join(lines) if lines else "- General interview readiness"

    def build_adaptive_messages(self, skill_gaps, conversation) -> List[Dict[str, str]]:
        """System prompt for the given skill gaps plus the client-held conversation"""
        history = []
        for message in conversation or []:
            if not isinstance(message, dict):
                continue
            role = message.get('role')
            content = message.get('content')
            if role in ('user', 'assistant') and isinstance(content, str) and content.strip():
                history.append({'role': role, 'content': content})

        if not history:
            history.append({'role': 'user', 'content': ADAPTIVE_OPENING_MESSAGE})

        system = {'role': 'system', 'content': ADAPTIVE_PROMPT.format(gaps=self.format_skill_gaps(skill_gaps))}
        return [system] + history


def relay_chat_stream(stream, on_complete: Optional[Callable[[str], None]] = None):
    """
    Relay a streamed completion as server-sent events.

    Every delta is forwarded as it arrives and collected. Once the gateway
    finishes, on_complete receives the full text, then the [DONE] frame is
    sent. A failure mid-stream emits an error frame and skips on_complete.
    """
    collected = []
    try:
        for content in iter_stream_deltas(stream):
            collected.append(content)
            yield delta_frame(content)
    except AIGatewayError as e:
        logging.error(f"Chat stream failed after {len(collected)} chunks: {e.message}")
        yield sse_frame({'error': e.message})
        return

    full_text = ''.join(collected)
    if on_complete is not None and full_text:
        try:
            on_complete(full_text)
        except Exception as e:
            logging.error(f"Failed to store streamed reply: {e}")
            yield sse_frame({'error': 'Failed to save the interviewer reply'})
            return

    yield DONE_FRAME


def save_assistant_message(session_id: int, content: str) -> InterviewMessage:
    """Store the accumulated assistant reply for a session"""
    try:
        message = InterviewMessage(session_id=session_id, role='assistant', content=content)
        db.session.add(message)
        db.session.commit()
        logging.info(f"Stored assistant reply for interview session {session_id} ({len(content)} chars)")
        return message
    except Exception:
        db.session.rollback()
        raise
