from sqlalchemy import Column, Integer, String, DateTime, Text
from tvreminder.database import Base
from tvreminder.utils.timezone import utc_now
import json


class Config(Base):
    __tablename__ = "config"

    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, nullable=False)
    value = Column(Text)
    module = Column(String, default="core")  # "core", "scheduler", "source"
    data_type = Column(String, default="string")  # string, int, float, bool, json
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
    description = Column(String, nullable=True)

    def __repr__(self):
        return f"<Config {self.key}={(self.value or '')[:20]}>"

    @property
    def typed_value(self):
        """Returns value converted to its declared type"""
        if self.data_type == "bool":
            return self.value.lower() in ("true", "1", "yes")
        elif self.data_type == "int":
            return int(self.value)
        elif self.data_type == "float":
            return float(self.value)
        elif self.data_type == "json":
            return json.loads(self.value)
        return self.value
