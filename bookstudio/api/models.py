"""Payload models exchanged with the backend."""
from typing import Dict, Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..config.constants import DEFAULT_FORM, WRITING_STYLES


def writing_style_display(style: str) -> str:
    """Human-readable name for a writing style key."""
    return WRITING_STYLES.get(style, style)


class ProjectForm(BaseModel):
    """Values of the project setup form."""

    title: str = Field(default="", description="Book title")
    description: str = Field(default="", description="What the book is about")
    pages: int = Field(default=DEFAULT_FORM['pages'], ge=1, description="Target page count")
    chapters: int = Field(default=DEFAULT_FORM['chapters'], ge=1, description="Target chapter count")
    language: str = Field(default=DEFAULT_FORM['language'])
    writing_style: str = Field(default=DEFAULT_FORM['writing_style'])

    @property
    def is_complete(self) -> bool:
        """Title and description are both required before submitting."""
        return bool(self.title.strip() and self.description.strip())


class Project(BaseModel):
    """A book project as stored by the backend."""

    id: str = Field(description="Project identifier")
    title: str = Field(description="Book title")
    description: str = Field(default="", description="Book description")
    pages: int = Field(default=DEFAULT_FORM['pages'])
    chapters: int = Field(default=DEFAULT_FORM['chapters'], ge=0)
    language: str = Field(default=DEFAULT_FORM['language'])
    writing_style: str = Field(default=DEFAULT_FORM['writing_style'])
    outline: str = Field(default="", description="Outline markup")
    chapters_content: Dict[int, str] = Field(
        default_factory=dict,
        description="Sparse mapping of chapter number to chapter markup"
    )

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        """Backends may hand out integer ids."""
        return str(v)

    @field_validator('outline', mode='before')
    @classmethod
    def null_outline(cls, v: Any) -> str:
        return v or ""

    @field_validator('chapters_content', mode='before')
    @classmethod
    def null_chapters(cls, v: Any) -> Any:
        return v or {}

    @model_validator(mode='after')
    def drop_out_of_range_chapters(self) -> 'Project':
        """Keep only chapter numbers within 1..chapters."""
        self.chapters_content = {
            number: text
            for number, text in self.chapters_content.items()
            if 1 <= number <= self.chapters
        }
        return self

    @property
    def has_outline(self) -> bool:
        return bool(self.outline and self.outline.strip())

    @property
    def style_display(self) -> str:
        return writing_style_display(self.writing_style)

    def is_valid_chapter(self, chapter_number: int) -> bool:
        """Check that a chapter number lies within the book."""
        return 1 <= chapter_number <= self.chapters

    def set_chapter(self, chapter_number: int, content: str) -> None:
        """
        Store chapter text, overwriting any previous version.

        Raises:
            ValueError: If the chapter number is outside 1..chapters
        """
        if not self.is_valid_chapter(chapter_number):
            raise ValueError(
                f"Chapter {chapter_number} is outside 1..{self.chapters}"
            )
        self.chapters_content[chapter_number] = content

    def get_chapter(self, chapter_number: int) -> Optional[str]:
        return self.chapters_content.get(chapter_number)


class UserStats(BaseModel):
    """Dashboard statistics for the signed-in user."""

    total_books: int = 0
    total_chapters: int = 0
    total_words: int = 0
    recent_activity: int = 0
    credit_balance: Optional[int] = None
    avg_words_per_chapter: int = 0
    user_since: Optional[str] = None


class BookCostEstimate(BaseModel):
    """Credit cost estimate for a planned book. Informational only."""

    model_config = ConfigDict(extra="allow")

    pages: Optional[int] = None
    chapters: Optional[int] = None
    total_cost: Optional[int] = Field(None, description="Estimated credits for the whole book")

    def summary(self) -> Dict[str, Any]:
        """All fields returned by the backend, including unknown ones."""
        return self.model_dump(exclude_none=True)


class ChapterGeneration(BaseModel):
    """Response of a generate-chapter call."""

    chapter_content: str
    credit_cost: Optional[int] = None
    remaining_credits: Optional[int] = None


class HtmlExport(BaseModel):
    """Response of the HTML export call."""

    html: str
    filename: Optional[str] = None
