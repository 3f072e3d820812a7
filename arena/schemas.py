# arena/schemas.py
# ------------------------------------------------------------
# Pydantic v2 schemas, organized by domain
# ------------------------------------------------------------
from datetime import datetime
import re
from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel, Field, field_validator


_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_SCRIPT_TAG_RE = re.compile(r"<\s*/?\s*script", re.IGNORECASE)


def _sanitize_single_line_text(value: str | None, *, allow_empty: bool = False) -> str | None:
    if value is None:
        return value
    if not isinstance(value, str):
        raise TypeError("Expected string input")
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not allow_empty and not cleaned:
        raise ValueError("Value cannot be empty")
    if any(ch in {"\n", "\r"} for ch in cleaned):
        raise ValueError("Value must be a single line of text")
    if "<" in cleaned or ">" in cleaned:
        raise ValueError("HTML tags are not allowed in this field")
    return cleaned


def _sanitize_multiline_text(value: str | None, *, allow_empty: bool = False) -> str | None:
    if value is None:
        return value
    if not isinstance(value, str):
        raise TypeError("Expected string input")
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not allow_empty and not cleaned:
        raise ValueError("Value cannot be empty")
    if _SCRIPT_TAG_RE.search(cleaned):
        raise ValueError("Script tags are not allowed")
    return cleaned


def _sanitize_lines(value: Sequence[str] | str | None) -> list[str] | None:
    """Accept a list or newline-separated text; drop blank entries."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.splitlines()
    cleaned: list[str] = []
    for item in value:
        sanitized = _sanitize_multiline_text(str(item), allow_empty=True)
        if sanitized:
            cleaned.append(sanitized)
    return cleaned


def _sanitize_tags(value: Sequence[str] | str | None) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    cleaned: list[str] = []
    for tag in value:
        sanitized = _sanitize_single_line_text(str(tag), allow_empty=True)
        if sanitized and sanitized not in cleaned:
            cleaned.append(sanitized)
    return cleaned


ChallengeType = Literal["duel", "team-event", "bounty"]
Difficulty = Literal["easy", "medium", "hard"]
Privacy = Literal["public", "private"]
ChallengeStatus = Literal["pending", "active", "submission_phase", "judging", "completed", "cancelled"]
ParticipantStatus = Literal["active", "submitted", "disqualified"]
TeamRole = Literal["leader", "member"]
MemberStatus = Literal["active", "left", "removed"]
ApplicationStatus = Literal["pending", "approved", "rejected"]


class DocumentRead(BaseModel):
    id: str
    version: int = 1
    created_at: datetime
    updated_at: datetime


# ============================================================
# Users
# ============================================================

class GitHubProfile(BaseModel):
    username: str
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    public_repos: int = 0
    languages: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    html_url: Optional[str] = None
    followers: int = 0
    following: int = 0


class UserPreferences(BaseModel):
    email_notifications: bool = True
    public_profile: bool = True
    preferred_languages: List[str] = Field(default_factory=list)


class PlatformStats(BaseModel):
    rating: int = 1200
    challenges_created: int = 0
    challenges_won: int = 0
    challenges_participated: int = 0
    profile_image_url: Optional[str] = None
    joined_at: datetime
    last_active: datetime
    preferences: UserPreferences = Field(default_factory=UserPreferences)


class User(DocumentRead):
    uid: str
    email: str = ""
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    github: GitHubProfile
    platform: PlatformStats


class UserProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=64)
    photo_url: Optional[str] = Field(default=None, max_length=512)
    preferences: Optional[UserPreferences] = None

    @field_validator("display_name", "photo_url", mode="before")
    @classmethod
    def _clean_single_line(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_single_line_text(value) if value is not None else value


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User


class LeaderboardEntry(BaseModel):
    rank: int
    user_uid: str
    username: str
    avatar_url: Optional[str] = None
    rating: int
    challenges_won: int
    challenges_participated: int


# ============================================================
# Challenges
# ============================================================

class ProblemTestCase(BaseModel):
    input: str
    expected_output: str
    is_public: bool = False


class Problem(BaseModel):
    statement: str
    requirements: List[str] = Field(default_factory=list)
    submission_format: str
    judging_criteria: List[str] = Field(default_factory=list)
    test_cases: Optional[List[ProblemTestCase]] = None


class Participant(BaseModel):
    user_uid: str
    team_id: Optional[str] = None
    joined_at: datetime
    status: ParticipantStatus = "active"


class SolutionSubmission(BaseModel):
    user_uid: str
    team_id: Optional[str] = None
    submission_url: str
    github_repo: Optional[str] = None
    description: str
    submitted_at: datetime
    score: Optional[float] = None
    feedback: Optional[str] = None


class Challenge(DocumentRead):
    creator_uid: str
    type: ChallengeType
    title: str
    description: str
    banner_image_url: Optional[str] = None
    difficulty: Difficulty
    duration_hours: int
    languages_allowed: List[str]
    privacy: Privacy
    status: ChallengeStatus
    max_participants: int
    max_team_size: Optional[int] = None
    prize_amount: Optional[float] = None
    participants: List[Participant] = Field(default_factory=list)
    problem: Problem
    submissions: List[SolutionSubmission] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    submission_deadline: Optional[datetime] = None
    ended_at: Optional[datetime] = None


class ProblemCreate(BaseModel):
    # emptiness is checked by the challenge service so it can answer with a clear message
    statement: str = ""
    requirements: List[str] = Field(default_factory=list)
    submission_format: str = ""
    judging_criteria: List[str] = Field(default_factory=list)
    test_cases: Optional[List[ProblemTestCase]] = None

    @field_validator("statement", "submission_format", mode="before")
    @classmethod
    def _clean_text(cls, value: Optional[str]) -> str:
        return _sanitize_multiline_text(value, allow_empty=True) or ""

    @field_validator("requirements", "judging_criteria", mode="before")
    @classmethod
    def _clean_lines(cls, value):
        return _sanitize_lines(value) or []


class ChallengeCreate(BaseModel):
    type: ChallengeType = "duel"
    title: str = Field(min_length=3, max_length=128)
    description: str = Field(min_length=1, max_length=5000)
    banner_image_url: Optional[str] = Field(default=None, max_length=512)
    difficulty: Difficulty = "medium"
    duration_hours: int = Field(default=24, ge=1, le=24 * 90)
    languages_allowed: List[str] = Field(default_factory=list)
    privacy: Privacy = "public"
    max_team_size: Optional[int] = Field(default=None, ge=1, le=100)
    prize_amount: Optional[float] = Field(default=None, ge=0)
    problem: ProblemCreate = Field(default_factory=ProblemCreate)

    @field_validator("title", "banner_image_url", mode="before")
    @classmethod
    def _clean_single_line_fields(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_single_line_text(value) if value is not None else value

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, value: str) -> str:
        return _sanitize_multiline_text(value)

    @field_validator("languages_allowed", mode="before")
    @classmethod
    def _clean_languages(cls, value):
        return _sanitize_tags(value) or []


class ChallengeUpdate(BaseModel):
    # all optional; partial updates supported
    title: Optional[str] = None
    description: Optional[str] = None
    banner_image_url: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    duration_hours: Optional[int] = Field(default=None, ge=1, le=24 * 90)
    languages_allowed: Optional[List[str]] = None
    privacy: Optional[Privacy] = None
    status: Optional[ChallengeStatus] = None
    max_team_size: Optional[int] = Field(default=None, ge=1, le=100)
    prize_amount: Optional[float] = Field(default=None, ge=0)
    problem: Optional[Problem] = None
    started_at: Optional[datetime] = None
    submission_deadline: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @field_validator("title", "banner_image_url", mode="before")
    @classmethod
    def _clean_optional_single_line_fields(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_single_line_text(value) if value is not None else value

    @field_validator("description", mode="before")
    @classmethod
    def _clean_optional_description(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_multiline_text(value) if value is not None else value

    @field_validator("languages_allowed", mode="before")
    @classmethod
    def _clean_languages(cls, value):
        return _sanitize_tags(value)


class ChallengeStatusChange(BaseModel):
    status: ChallengeStatus


class ChallengeJoin(BaseModel):
    team_id: Optional[str] = None


class ChallengePage(BaseModel):
    items: List[Challenge]
    next_cursor: Optional[str] = None


class UserChallenges(BaseModel):
    created: List[Challenge]
    participating: List[Challenge]


class SolutionCreate(BaseModel):
    submission_url: str = Field(default="", max_length=512)
    description: str = Field(default="", max_length=5000)
    github_repo: Optional[str] = Field(default=None, max_length=512)
    team_id: Optional[str] = None

    @field_validator("submission_url", mode="before")
    @classmethod
    def _clean_url(cls, value: Optional[str]) -> str:
        return _sanitize_single_line_text(value, allow_empty=True) or ""

    @field_validator("github_repo", mode="before")
    @classmethod
    def _clean_repo(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_single_line_text(value, allow_empty=True) or None

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, value: Optional[str]) -> str:
        return _sanitize_multiline_text(value, allow_empty=True) or ""


# ============================================================
# Teams
# ============================================================

class TeamMember(BaseModel):
    user_uid: str
    role: TeamRole
    joined_at: datetime
    status: MemberStatus = "active"


class Team(DocumentRead):
    challenge_id: str
    name: str
    description: Optional[str] = None
    leader_uid: str
    members: List[TeamMember] = Field(default_factory=list)
    max_size: int
    is_open: bool = True

    def active_members(self) -> list[TeamMember]:
        return [m for m in self.members if m.status == "active"]


class TeamCreate(BaseModel):
    name: str = Field(default="", max_length=64)
    description: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: Optional[str]) -> str:
        return _sanitize_single_line_text(value, allow_empty=True) or ""

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_multiline_text(value, allow_empty=True) or None


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=64)
    description: Optional[str] = Field(default=None, max_length=2000)
    is_open: Optional[bool] = None

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_single_line_text(value) if value is not None else value

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_multiline_text(value, allow_empty=True) if value is not None else value


# ============================================================
# Applications
# ============================================================

class Application(DocumentRead):
    challenge_id: str
    applicant_uid: str
    message: Optional[str] = None
    status: ApplicationStatus = "pending"


class ApplicationCreate(BaseModel):
    message: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("message", mode="before")
    @classmethod
    def _clean_message(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_multiline_text(value, allow_empty=True) or None


# ============================================================
# Uploads
# ============================================================

class UploadResult(BaseModel):
    url: str
    path: str
    size: int
