"""HTML 图表报告（Chart.js）."""

import os
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .models import SearchBenchmarkResult, StressTestResult

TEMPLATE_DIR = Path(__file__).parent / "templates"


class ChartGenerator:
    """生成 charts_<时间戳>.html."""

    def __init__(self, output_dir: str, template_dir: Optional[Path] = None):
        self.output_dir = output_dir
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def render(
        self,
        stress: Optional[StressTestResult],
        search: Optional[Mapping[str, SearchBenchmarkResult]] = None,
        generated: Optional[datetime] = None,
    ) -> str:
        search = search or {}
        ops = stress.operation_stats if stress is not None else {}

        return self.env.get_template("charts.html").render(
            generated=f"{generated or datetime.now():%Y-%m-%d %H:%M:%S}",
            total=stress.total_requests if stress else 0,
            success_rate=f"{stress.success_rate:.2f}%" if stress else "-",
            avg_response=f"{stress.avg_response_ms:.2f} ms" if stress else "-",
            rps=f"{stress.requests_per_second:.2f}" if stress else "-",
            operation_labels=[kind.value for kind in ops],
            operation_avg=[round(s.avg_duration_ms, 2) for s in ops.values()],
            operation_errors=[s.errors for s in ops.values()],
            search_labels=list(search),
            search_avg=[round(r.avg_duration_ms, 2) for r in search.values()],
            response_times=(
                [
                    round(stress.min_response_ms, 2),
                    round(stress.avg_response_ms, 2),
                    round(stress.max_response_ms, 2),
                ]
                if stress
                else []
            ),
        )

    def generate(
        self,
        stress: Optional[StressTestResult],
        search: Optional[Mapping[str, SearchBenchmarkResult]] = None,
    ) -> str:
        """写入 HTML 文件并返回路径."""
        now = datetime.now()
        os.makedirs(self.output_dir, exist_ok=True)
        path = os.path.join(self.output_dir, f"charts_{now:%Y%m%d_%H%M%S}.html")
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.render(stress, search, now))
        return path
