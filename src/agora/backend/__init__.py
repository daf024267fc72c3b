"""Agora backend service"""
