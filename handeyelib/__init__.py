"""
handeyelib – hand-eye калибровка (AX = XB) по парам поз рука/камера.

Смотри отдельные подмодули:
  config       – имена TF-кадров, файлы, пороги, параметры решателя
  transforms   – SE3 утилиты, ось-угол, кватернионы, Эйлеры, проверка жёсткости
  pose_store   – накопление пар поз (append / undo)
  motions      – относительные движения от опорной пары
  calibration  – закрытая форма + нелинейное уточнение X
  report       – текстовый отчёт и запись результата
  storage      – YAML (cv2.FileStorage) файлы пар и результата
  pose_source  – интерфейс источника поз (TF, запись, синтетика)
  session      – capture / undo / finalize, режим «из файла»
  logutil      – печать поз в человекочитаемом формате
"""
from . import config, transforms, logutil, pose_store, motions, calibration, report, storage, pose_source, session
__all__ = ["config", "transforms", "logutil", "pose_store", "motions", "calibration",
           "report", "storage", "pose_source", "session"]
