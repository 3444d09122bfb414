from typing import List

import pandas as pd

from cvmatch.models.schemas import ProjectCVModel

RANKING_COLUMNS = ["ranking", "project_cv_id", "original_filename", "score"]


def rankings_frame(project_cvs: List[ProjectCVModel]) -> pd.DataFrame:
    """Stored ranking of a project as a DataFrame; unscored CVs are left out."""
    data = [{
        "ranking": cv.ranking,
        "project_cv_id": cv.project_cv_id,
        "original_filename": cv.original_filename,
        "score": round(cv.score, 2),
    } for cv in project_cvs if cv.ranking is not None and cv.score is not None]

    df = pd.DataFrame(data, columns=RANKING_COLUMNS)
    if len(df):
        df = df.sort_values("ranking").reset_index(drop=True)
    return df


def rankings_csv(project_cvs: List[ProjectCVModel]) -> str:
    return rankings_frame(project_cvs).to_csv(index=False)
