from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class TableRow(BaseModel):
    """A row of a platform table.

    Rows are owned by the platform; these models only describe the shape the
    service reads and writes. Unknown columns are ignored so schema additions
    on the platform side don't break parsing.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    __tablename__: ClassVar[str]
