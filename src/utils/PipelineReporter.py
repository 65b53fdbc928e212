import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd

log = logging.getLogger("PipelineReporter")


def _jsonable(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {str(k): _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonable(v) for v in obj]
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, pd.DataFrame):
        return {str(k): _jsonable(v) for k, v in obj.to_dict().items()}
    return obj


class PipelineReporter:
    """
    Collects one section per pipeline stage (a JSON-able summary, optional
    tables, optional chart paths) and writes Markdown + JSON + HTML reports.
    """

    def __init__(self, report_dir: Union[str, Path] = "reports"):
        self.report_dir = Path(report_dir)
        self.report_dir.mkdir(parents=True, exist_ok=True)
        self.sections: Dict[str, Dict[str, Any]] = {}

    def register(self, name: str, summary: Dict[str, Any],
                 charts: Optional[List[str]] = None,
                 tables: Optional[Dict[str, pd.DataFrame]] = None):
        """Register (or replace) the section for one stage."""
        self.sections[name] = {
            "summary": summary,
            "charts": list(charts or []),
            "tables": dict(tables or {}),
        }

    def add_charts(self, name: str, charts: List[str]):
        self.sections.setdefault(
            name, {"summary": {}, "charts": [], "tables": {}})["charts"].extend(charts)

    def _markdown(self) -> List[str]:
        markdown = ["# Biopsy Outlier Analysis Report\n"]
        for name, section in self.sections.items():
            markdown.append(f"## {name}\n")
            if section["summary"]:
                markdown.append(
                    "```json\n" + json.dumps(_jsonable(section["summary"]), indent=2)
                    + "\n```\n")
            for title, table in section["tables"].items():
                markdown.append(f"**{title}**\n")
                markdown.append("```\n" + table.to_string() + "\n```\n")
            for chart in section["charts"]:
                rel = Path(chart)
                try:
                    rel = rel.relative_to(self.report_dir)
                except ValueError:
                    pass
                markdown.append(f"![{name}]({rel.as_posix()})\n")
        return markdown

    def generate_report(self, output_name: str = "pipeline_report") -> Dict[str, Any]:
        final_report = {
            name: {
                "summary": _jsonable(sect["summary"]),
                "charts": sect["charts"],
                "tables": {t: _jsonable(df) for t, df in sect["tables"].items()},
            }
            for name, sect in self.sections.items()
        }
        markdown = self._markdown()

        json_path = self.report_dir / f"{output_name}.json"
        md_path = self.report_dir / f"{output_name}.md"
        html_path = self.report_dir / f"{output_name}.html"

        with open(json_path, "w") as f:
            json.dump(final_report, f, indent=2)
        with open(md_path, "w") as f:
            f.write("\n".join(markdown))
        with open(html_path, "w") as f:
            f.write("<html><body><pre>"
                    + "</pre><hr><pre>".join(markdown) + "</pre></body></html>")

        log.info(f"Report written → {md_path}")
        return final_report
