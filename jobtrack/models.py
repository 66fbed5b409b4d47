from dataclasses import dataclass
import datetime as dt

DATE_FORMAT = "%d-%m-%Y"


@dataclass(frozen=True)
class JobRecord:
    id: int
    title: str
    description: str
    date: dt.date

    @property
    def display_date(self) -> str:
        return self.date.strftime(DATE_FORMAT)

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "date": self.display_date,
        }

    @classmethod
    def from_orm(cls, job) -> "JobRecord":
        return cls(id=job.id, title=job.title, description=job.description, date=job.date)
